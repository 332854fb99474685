"""
AMENADE - Logistics Utilities
=============================
Distance helpers used by radius search on packages and trips.
"""

import math


# Earth radius in km
EARTH_RADIUS_KM = 6371.0

# One degree of latitude in km
KM_PER_DEGREE = 111.32


# ============================================
# DISTANCE CALCULATION (Haversine)
# ============================================

def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two GPS points.

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(delta_lat / 2) ** 2 +
        math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lng: float, radius_km: float) -> tuple:
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing the radius.
    Used as a cheap SQL prefilter before the exact haversine check.
    """
    delta_lat = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    delta_lng = 180.0 if cos_lat < 1e-6 else radius_km / (KM_PER_DEGREE * cos_lat)
    return lat - delta_lat, lat + delta_lat, lng - delta_lng, lng + delta_lng


def filter_within_radius(queryset, lat_field: str, lng_field: str,
                         lat: float, lng: float, radius_km: float):
    """
    Restrict a queryset to rows whose (lat_field, lng_field) lies within
    radius_km of (lat, lng). Rows without coordinates are excluded.
    """
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)
    candidates = queryset.filter(**{
        f'{lat_field}__gte': min_lat,
        f'{lat_field}__lte': max_lat,
        f'{lng_field}__gte': min_lng,
        f'{lng_field}__lte': max_lng,
    }).values_list('pk', lat_field, lng_field)

    matching = [
        pk for pk, row_lat, row_lng in candidates
        if haversine_distance(lat, lng, row_lat, row_lng) <= radius_km
    ]
    return queryset.filter(pk__in=matching)
