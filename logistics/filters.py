"""
Logistics App Filters - marketplace search for packages and trips.

Query parameter names follow the web client (camelCase). Radius search takes
<point>Latitude, <point>Longitude and locationRadius (km, default 50).
"""

import django_filters
from django.db.models import Q

from .models import Package, Trip
from .utils import filter_within_radius


DEFAULT_RADIUS_KM = 50


class RadiusFilterSet(django_filters.FilterSet):
    """
    FilterSet with haversine radius search on (lat, lng) column pairs.
    Subclasses list their points in RADIUS_POINTS: prefix → model field prefix.
    """

    RADIUS_POINTS = {}

    locationRadius = django_filters.NumberFilter(method='skip')
    search = django_filters.CharFilter(method='filter_search')

    SEARCH_FIELDS = ()

    def skip(self, queryset, name, value):
        return queryset

    def filter_search(self, queryset, name, value):
        query = Q()
        for field in self.SEARCH_FIELDS:
            query |= Q(**{f'{field}__icontains': value})
        return queryset.filter(query)

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        data = self.form.cleaned_data
        radius = data.get('locationRadius') or DEFAULT_RADIUS_KM
        for param, field in self.RADIUS_POINTS.items():
            lat = data.get(f'{param}Latitude')
            lng = data.get(f'{param}Longitude')
            if lat is None or lng is None:
                continue
            queryset = filter_within_radius(
                queryset, f'{field}_latitude', f'{field}_longitude', float(lat), float(lng), float(radius)
            )
        return queryset


class PackageFilter(RadiusFilterSet):
    RADIUS_POINTS = {'pickup': 'pickup', 'delivery': 'delivery'}
    SEARCH_FIELDS = (
        'title', 'description', 'category', 'special_instructions',
        'pickup_city', 'pickup_country', 'delivery_city', 'delivery_country',
    )

    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    priority = django_filters.CharFilter(field_name='priority', lookup_expr='iexact')
    offeredPriceMin = django_filters.NumberFilter(field_name='offered_price', lookup_expr='gte')
    offeredPriceMax = django_filters.NumberFilter(field_name='offered_price', lookup_expr='lte')
    finalPriceMin = django_filters.NumberFilter(field_name='final_price', lookup_expr='gte')
    finalPriceMax = django_filters.NumberFilter(field_name='final_price', lookup_expr='lte')
    valueMin = django_filters.NumberFilter(field_name='value', lookup_expr='gte')
    valueMax = django_filters.NumberFilter(field_name='value', lookup_expr='lte')
    pickupDateFrom = django_filters.IsoDateTimeFilter(field_name='pickup_date', lookup_expr='gte')
    pickupDateTo = django_filters.IsoDateTimeFilter(field_name='pickup_date', lookup_expr='lte')
    deliveryDateFrom = django_filters.IsoDateTimeFilter(field_name='delivery_date', lookup_expr='gte')
    deliveryDateTo = django_filters.IsoDateTimeFilter(field_name='delivery_date', lookup_expr='lte')
    isFragile = django_filters.BooleanFilter(field_name='is_fragile')
    requiresSignature = django_filters.BooleanFilter(field_name='requires_signature')
    pickupCity = django_filters.CharFilter(field_name='pickup_city', lookup_expr='icontains')
    pickupCountry = django_filters.CharFilter(field_name='pickup_country', lookup_expr='icontains')
    deliveryCity = django_filters.CharFilter(field_name='delivery_city', lookup_expr='icontains')
    deliveryCountry = django_filters.CharFilter(field_name='delivery_country', lookup_expr='icontains')
    pickupLatitude = django_filters.NumberFilter(method='skip')
    pickupLongitude = django_filters.NumberFilter(method='skip')
    deliveryLatitude = django_filters.NumberFilter(method='skip')
    deliveryLongitude = django_filters.NumberFilter(method='skip')

    class Meta:
        model = Package
        fields = []


class TripFilter(RadiusFilterSet):
    RADIUS_POINTS = {'origin': 'origin', 'destination': 'destination'}
    SEARCH_FIELDS = (
        'title', 'description', 'transport_mode',
        'origin_city', 'origin_country', 'destination_city', 'destination_country',
    )

    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    transportMode = django_filters.CharFilter(field_name='transport_mode', lookup_expr='iexact')
    pricePerKgMin = django_filters.NumberFilter(field_name='price_per_kg', lookup_expr='gte')
    pricePerKgMax = django_filters.NumberFilter(field_name='price_per_kg', lookup_expr='lte')
    minimumPriceMin = django_filters.NumberFilter(field_name='minimum_price', lookup_expr='gte')
    minimumPriceMax = django_filters.NumberFilter(field_name='minimum_price', lookup_expr='lte')
    maximumPriceMin = django_filters.NumberFilter(field_name='maximum_price', lookup_expr='gte')
    maximumPriceMax = django_filters.NumberFilter(field_name='maximum_price', lookup_expr='lte')
    departureDateFrom = django_filters.IsoDateTimeFilter(field_name='departure_date', lookup_expr='gte')
    departureDateTo = django_filters.IsoDateTimeFilter(field_name='departure_date', lookup_expr='lte')
    arrivalDateFrom = django_filters.IsoDateTimeFilter(field_name='arrival_date', lookup_expr='gte')
    arrivalDateTo = django_filters.IsoDateTimeFilter(field_name='arrival_date', lookup_expr='lte')
    maxWeightMin = django_filters.NumberFilter(field_name='max_weight_kg', lookup_expr='gte')
    maxWeightMax = django_filters.NumberFilter(field_name='max_weight_kg', lookup_expr='lte')
    availableSpaceMin = django_filters.NumberFilter(field_name='available_space_kg', lookup_expr='gte')
    availableSpaceMax = django_filters.NumberFilter(field_name='available_space_kg', lookup_expr='lte')
    flexibleDates = django_filters.BooleanFilter(field_name='flexible_dates')
    originCity = django_filters.CharFilter(field_name='origin_city', lookup_expr='icontains')
    originCountry = django_filters.CharFilter(field_name='origin_country', lookup_expr='icontains')
    destinationCity = django_filters.CharFilter(field_name='destination_city', lookup_expr='icontains')
    destinationCountry = django_filters.CharFilter(field_name='destination_country', lookup_expr='icontains')
    originLatitude = django_filters.NumberFilter(method='skip')
    originLongitude = django_filters.NumberFilter(method='skip')
    destinationLatitude = django_filters.NumberFilter(method='skip')
    destinationLongitude = django_filters.NumberFilter(method='skip')

    class Meta:
        model = Trip
        fields = []


# sortBy values accepted by the web client → model field
PACKAGE_SORT_FIELDS = {
    'title': 'title',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'offeredPrice': 'offered_price',
    'finalPrice': 'final_price',
    'value': 'value',
    'pickupDate': 'pickup_date',
    'deliveryDate': 'delivery_date',
    'category': 'category',
    'priority': 'priority',
}

TRIP_SORT_FIELDS = {
    'title': 'title',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
    'departureDate': 'departure_date',
    'arrivalDate': 'arrival_date',
    'pricePerKg': 'price_per_kg',
    'minimumPrice': 'minimum_price',
    'maximumPrice': 'maximum_price',
    'maxWeight': 'max_weight_kg',
    'availableSpace': 'available_space_kg',
    'transportMode': 'transport_mode',
}


def apply_sort(queryset, params, sort_fields, default='createdAt'):
    """Order by ?sortBy=<key>&sortOrder=asc|desc; unknown keys fall back to the default."""
    field = sort_fields.get(params.get('sortBy'), sort_fields[default])
    descending = params.get('sortOrder', 'desc').lower() != 'asc'
    return queryset.order_by(f"{'-' if descending else ''}{field}")
