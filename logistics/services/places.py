"""
LOGISTICS App - Google Places Proxy

Address autocomplete, text search, place details and (reverse) geocoding
for the package and trip forms. Answers are cached so repeated keystrokes
do not hit the Google quota.
"""

import hashlib
import json
import logging
from typing import Dict, List, Optional

import requests
from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION
# ============================================

PLACES_BASE_URL = 'https://maps.googleapis.com/maps/api'
AUTOCOMPLETE_URL = f'{PLACES_BASE_URL}/place/autocomplete/json'
TEXT_SEARCH_URL = f'{PLACES_BASE_URL}/place/textsearch/json'
DETAILS_URL = f'{PLACES_BASE_URL}/place/details/json'
GEOCODE_URL = f'{PLACES_BASE_URL}/geocode/json'

DETAILS_FIELDS = (
    'place_id,name,formatted_address,geometry,address_components,types,'
    'international_phone_number,website,rating,user_ratings_total'
)

# Google address component type → parsed field
COMPONENT_FIELDS = {
    'street_number': 'street_number',
    'route': 'street_name',
    'locality': 'city',
    'administrative_area_level_1': 'state',
    'administrative_area_level_2': 'county',
    'country': 'country',
    'postal_code': 'postal_code',
    'sublocality': 'sublocality',
    'sublocality_level_1': 'sublocality',
    'neighborhood': 'neighborhood',
}


class PlacesNotConfigured(Exception):
    """GOOGLE_MAPS_API_KEY is empty."""


class PlacesError(Exception):
    """Google answered with an error status or could not be reached."""


class GooglePlacesService:

    @staticmethod
    def api_key() -> str:
        key = getattr(settings, 'GOOGLE_MAPS_API_KEY', '')
        if not key:
            raise PlacesNotConfigured('Google Maps API key is not configured')
        return key

    @staticmethod
    def _cache_key(url: str, params: Dict) -> str:
        digest = hashlib.md5(json.dumps([url, params], sort_keys=True).encode()).hexdigest()
        return f"places:{digest}"

    @classmethod
    def _get(cls, url: str, params: Dict, allow_empty: bool = False) -> Dict:
        """GET a Places endpoint; cached by url + params (the key excluded)."""
        cache_key = cls._cache_key(url, params)
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            response = requests.get(url, params={**params, 'key': cls.api_key()}, timeout=10)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"[PLACES] Request failed: {e}")
            raise PlacesError('Places service unreachable') from e

        status = data.get('status')
        if status != 'OK' and not (allow_empty and status == 'ZERO_RESULTS'):
            logger.warning(f"[PLACES] {url.rsplit('/', 2)[-2]} returned {status}")
            raise PlacesError(data.get('error_message') or f'Places API error: {status}')

        cache.set(cache_key, data, getattr(settings, 'GOOGLE_PLACES_CACHE_TTL', 3600))
        return data

    # ============================================
    # PARSING
    # ============================================

    @staticmethod
    def parse_address_components(components: List[Dict]) -> Dict:
        parsed = {field: '' for field in set(COMPONENT_FIELDS.values())}
        parsed.update({'state_code': '', 'country_code': ''})
        for component in components or []:
            for component_type in component.get('types', []):
                field = COMPONENT_FIELDS.get(component_type)
                if not field:
                    continue
                parsed[field] = component.get('long_name', '')
                if component_type == 'administrative_area_level_1':
                    parsed['state_code'] = component.get('short_name', '')
                elif component_type == 'country':
                    parsed['country_code'] = component.get('short_name', '')
        return parsed

    @classmethod
    def to_location(cls, place: Dict) -> Dict:
        location = place.get('geometry', {}).get('location', {})
        details = {
            'place_id': place.get('place_id'),
            'name': place.get('name') or place.get('formatted_address', ''),
            'coordinates': {'lat': location.get('lat'), 'lng': location.get('lng')},
            'formatted_address': place.get('formatted_address', ''),
            'types': place.get('types', []),
        }
        for optional in ('international_phone_number', 'website', 'rating', 'user_ratings_total'):
            if optional in place:
                details[optional] = place[optional]
        details.update(cls.parse_address_components(place.get('address_components')))
        return details

    # ============================================
    # OPERATIONS
    # ============================================

    @classmethod
    def autocomplete(cls, text: str, lat: Optional[float] = None, lng: Optional[float] = None,
                     radius: Optional[int] = None, language: str = '', types: str = '',
                     components: str = '') -> Dict:
        params = {'input': text}
        if lat is not None and lng is not None:
            params['location'] = f'{lat},{lng}'
            params['radius'] = radius or settings.GOOGLE_PLACES_DEFAULT_RADIUS
        for name, value in (('language', language), ('types', types), ('components', components)):
            if value:
                params[name] = value

        data = cls._get(AUTOCOMPLETE_URL, params, allow_empty=True)
        return {
            'predictions': data.get('predictions', []),
            'status': data.get('status'),
        }

    @classmethod
    def search(cls, query: str, lat: Optional[float] = None, lng: Optional[float] = None,
               radius: Optional[int] = None, place_type: str = '', language: str = '',
               region: str = '') -> List[Dict]:
        params = {'query': query}
        if lat is not None and lng is not None:
            params['location'] = f'{lat},{lng}'
            params['radius'] = radius or settings.GOOGLE_PLACES_DEFAULT_RADIUS
        for name, value in (('type', place_type), ('language', language), ('region', region)):
            if value:
                params[name] = value

        data = cls._get(TEXT_SEARCH_URL, params, allow_empty=True)
        return [cls.to_location(place) for place in data.get('results', [])]

    @classmethod
    def details(cls, place_id: str) -> Dict:
        data = cls._get(DETAILS_URL, {'place_id': place_id, 'fields': DETAILS_FIELDS})
        return cls.to_location(data.get('result', {}))

    @classmethod
    def geocode(cls, address: str) -> Optional[Dict]:
        data = cls._get(GEOCODE_URL, {'address': address}, allow_empty=True)
        results = data.get('results', [])
        return cls.to_location(results[0]) if results else None

    @classmethod
    def reverse_geocode(cls, lat: float, lng: float) -> Optional[Dict]:
        data = cls._get(GEOCODE_URL, {'latlng': f'{lat},{lng}'}, allow_empty=True)
        results = data.get('results', [])
        return cls.to_location(results[0]) if results else None
