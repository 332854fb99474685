"""
Logistics App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    PackageViewSet, TripViewSet, ReviewViewSet, AssignmentView, AssignmentActionView,
    places_autocomplete, places_search, place_details, places_geocode,
)

router = DefaultRouter()
router.register(r'packages', PackageViewSet, basename='package')
router.register(r'trips', TripViewSet, basename='trip')
router.register(r'reviews', ReviewViewSet, basename='review')

urlpatterns = [
    # Assignments
    path('assignments/', AssignmentView.as_view(), name='assignments'),
    path(
        'assignments/<uuid:package_id>/<str:action_name>/',
        AssignmentActionView.as_view(),
        name='assignment-action'
    ),

    # Google Places proxy
    path('places/autocomplete/', places_autocomplete, name='places-autocomplete'),
    path('places/search/', places_search, name='places-search'),
    path('places/geocode/', places_geocode, name='places-geocode'),
    path('places/<str:place_id>/', place_details, name='place-details'),

    # Router URLs
    path('', include(router.urls)),
]
