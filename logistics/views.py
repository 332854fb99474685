"""
Logistics App Views - Packages, Trips, Assignments, Reviews & Places API
"""

import logging
from rest_framework import viewsets, status, permissions
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.db.models import Q

from core.models import UserRole
from core.pagination import PageLimitPagination
from core.services.subscription import SubscriptionService
from .filters import PackageFilter, TripFilter, apply_sort, PACKAGE_SORT_FIELDS, TRIP_SORT_FIELDS
from .models import (
    Package, PackageStatus, Trip, TripStatus, Review,
    PUBLIC_PACKAGE_STATUSES, PUBLIC_TRIP_STATUSES,
)
from .serializers import (
    PackageSerializer, TripSerializer, AssignmentSerializer, ReviewSerializer,
    TrackingEventSerializer,
)
from .services.assignment import AssignmentService
from .services.places import GooglePlacesService, PlacesNotConfigured, PlacesError

logger = logging.getLogger(__name__)


def is_true(value) -> bool:
    return str(value).lower() in ('1', 'true', 'yes')


class IsOwnerOrAdmin(permissions.BasePermission):
    """Object-level write access for the owner (owner_field on the view) or an admin."""

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        if request.user.role == UserRole.ADMIN:
            return True
        return getattr(obj, f'{view.owner_field}_id') == request.user.pk


class MarketplaceViewSet(viewsets.ModelViewSet):
    """
    Shared behaviour of the package and trip boards.

    Lists show only public statuses; ?mine=true lists the caller's own items
    in every status. Creating consumes one post of the caller's plan.
    """

    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsOwnerOrAdmin]
    pagination_class = PageLimitPagination
    owner_field = None
    public_statuses = []
    sort_fields = {}
    locked_statuses = []

    def base_queryset(self):
        raise NotImplementedError

    def get_queryset(self):
        qs = self.base_queryset()
        user = self.request.user

        if self.action == 'list':
            if user.is_authenticated and is_true(self.request.query_params.get('mine')):
                qs = qs.filter(**{self.owner_field: user})
            else:
                qs = qs.filter(status__in=self.public_statuses)
            return apply_sort(qs, self.request.query_params, self.sort_fields)

        if not user.is_authenticated:
            return qs.filter(status__in=self.public_statuses)
        if user.role == UserRole.ADMIN:
            return qs
        return qs.filter(self.visibility_filter(user)).distinct()

    def visibility_filter(self, user):
        return Q(status__in=self.public_statuses) | Q(**{self.owner_field: user})

    def create(self, request, *args, **kwargs):
        eligibility = SubscriptionService.can_post(request.user)
        if not eligibility['canPost']:
            return Response({
                'error': eligibility['message'],
                'needsResubscribe': True,
                'currentTier': eligibility['currentTier'],
            }, status=status.HTTP_403_FORBIDDEN)
        return super().create(request, *args, **kwargs)

    def perform_create(self, serializer):
        instance = serializer.save(**{self.owner_field: self.request.user})
        logger.info(f"[MARKETPLACE] {instance.__class__.__name__} {str(instance.pk)[:8]} posted by {self.request.user.pk}")

    def destroy(self, request, *args, **kwargs):
        instance = self.get_object()
        if instance.status in self.locked_statuses:
            return Response(
                {'error': f'Cannot delete while {instance.get_status_display().lower()}'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().destroy(request, *args, **kwargs)


class PackageViewSet(MarketplaceViewSet):
    """Packages senders post for delivery."""

    serializer_class = PackageSerializer
    filterset_class = PackageFilter
    owner_field = 'sender'
    public_statuses = PUBLIC_PACKAGE_STATUSES
    sort_fields = PACKAGE_SORT_FIELDS
    locked_statuses = [
        PackageStatus.MATCHED, PackageStatus.IN_TRANSIT,
        PackageStatus.DELIVERED, PackageStatus.DISPUTED,
    ]

    def base_queryset(self):
        return Package.objects.select_related('sender', 'trip', 'trip__traveler')

    def visibility_filter(self, user):
        return super().visibility_filter(user) | Q(trip__traveler=user)

    @action(detail=True, methods=['get'])
    def tracking(self, request, pk=None):
        package = self.get_object()
        return Response(TrackingEventSerializer(package.tracking_events.all(), many=True).data)


class TripViewSet(MarketplaceViewSet):
    """Trips travelers post with spare capacity."""

    serializer_class = TripSerializer
    filterset_class = TripFilter
    owner_field = 'traveler'
    public_statuses = PUBLIC_TRIP_STATUSES
    sort_fields = TRIP_SORT_FIELDS
    locked_statuses = [TripStatus.ACTIVE, TripStatus.COMPLETED]

    def base_queryset(self):
        return Trip.objects.select_related('traveler')

    def visibility_filter(self, user):
        return super().visibility_filter(user) | Q(packages__sender=user)

    def destroy(self, request, *args, **kwargs):
        if self.get_object().packages.exists():
            return Response(
                {'error': 'Cannot delete a trip with assigned packages'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().destroy(request, *args, **kwargs)

    @action(detail=True, methods=['get'])
    def packages(self, request, pk=None):
        """Packages assigned to the trip (traveler or admin)."""
        trip = self.get_object()
        if trip.traveler_id != request.user.pk and request.user.role != UserRole.ADMIN:
            return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)
        return Response(PackageSerializer(trip.packages.select_related('sender'), many=True).data)


# ============================================
# ASSIGNMENTS
# ============================================

class AssignmentView(APIView):
    """
    GET  ?type=available-trips&packageId=  → caller's trips that can take the package
    GET  ?type=available-packages&tripId=  → caller's packages that can join the trip
    POST → assign a package to a trip
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        lookup_type = request.query_params.get('type')

        try:
            if lookup_type == 'available-trips':
                package = Package.objects.get(pk=request.query_params.get('packageId'))
                trips = AssignmentService.available_trips_for(package, request.user)
                return Response(TripSerializer(trips, many=True).data)

            if lookup_type == 'available-packages':
                trip = Trip.objects.get(pk=request.query_params.get('tripId'))
                packages = AssignmentService.available_packages_for(trip, request.user)
                return Response(PackageSerializer(packages, many=True).data)
        except (Package.DoesNotExist, Trip.DoesNotExist):
            return Response({'error': 'Not found'}, status=status.HTTP_404_NOT_FOUND)
        except DjangoValidationError:
            return Response({'error': 'Invalid identifier'}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            {'error': "type must be 'available-trips' or 'available-packages'"},
            status=status.HTTP_400_BAD_REQUEST
        )

    def post(self, request):
        serializer = AssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = AssignmentService.create_assignment(
                data['package_id'],
                data['trip_id'],
                data['confirmations'],
                request.user,
                notification=data['notification'],
            )
        except Package.DoesNotExist:
            return Response({'error': 'Package not found'}, status=status.HTTP_404_NOT_FOUND)
        except Trip.DoesNotExist:
            return Response({'error': 'Trip not found'}, status=status.HTTP_404_NOT_FOUND)
        except PermissionError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'success': True,
            'message': 'Package assigned to trip successfully',
            'package': PackageSerializer(result['package']).data,
            'chatId': str(result['chat'].id),
        }, status=status.HTTP_201_CREATED)


class AssignmentActionView(APIView):
    """POST /api/assignments/<package_id>/<action>/ - confirm, mark_delivered, cancel, dispute."""

    permission_classes = [permissions.IsAuthenticated]

    ACTIONS = ('confirm', 'mark_delivered', 'cancel', 'dispute')

    def post(self, request, package_id, action_name):
        if action_name not in self.ACTIONS:
            return Response({'error': 'Invalid action'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            if action_name == 'confirm':
                package = AssignmentService.confirm_pickup(package_id, request.user)
            elif action_name == 'mark_delivered':
                package = AssignmentService.mark_delivered(package_id, request.user)
            elif action_name == 'cancel':
                package = AssignmentService.cancel(package_id, request.user)
            else:
                return self._dispute(request, package_id)
        except Package.DoesNotExist:
            return Response({'error': 'Package not found'}, status=status.HTTP_404_NOT_FOUND)
        except PermissionError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({'success': True, 'package': PackageSerializer(package).data})

    def _dispute(self, request, package_id):
        from support.serializers import DisputeCreateSerializer, DisputeSerializer
        from support.services import SupportService

        package = Package.objects.select_related('trip', 'trip__traveler').get(pk=package_id)
        serializer = DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        dispute = SupportService.create_dispute(
            request.user,
            data['dispute_type'],
            data['description'],
            package=package,
            evidence=data.get('evidence'),
            title=data.get('title', ''),
        )
        return Response({'success': True, 'dispute': DisputeSerializer(dispute).data},
                        status=status.HTTP_201_CREATED)


# ============================================
# REVIEWS
# ============================================

class ReviewViewSet(viewsets.ModelViewSet):
    """
    Reviews between the two parties of a delivered package.
    ?userId= lists the reviews a user received.
    """

    serializer_class = ReviewSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]
    pagination_class = PageLimitPagination
    http_method_names = ['get', 'post', 'head', 'options']

    def get_queryset(self):
        qs = Review.objects.select_related('giver', 'receiver')
        user_id = self.request.query_params.get('userId')
        if user_id:
            qs = qs.filter(receiver_id=user_id)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        package = serializer.validated_data['package']

        traveler = package.trip.traveler
        if request.user.pk == package.sender_id:
            receiver = traveler
        elif request.user.pk == traveler.pk:
            receiver = package.sender
        else:
            return Response(
                {'error': 'Only the sender or the traveler of this package can review it'},
                status=status.HTTP_403_FORBIDDEN
            )

        if Review.objects.filter(package=package, giver=request.user).exists():
            return Response({'error': 'You have already reviewed this delivery'},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            review = serializer.save(giver=request.user, receiver=receiver, trip=package.trip)
        except IntegrityError:
            return Response({'error': 'You have already reviewed this delivery'},
                            status=status.HTTP_400_BAD_REQUEST)

        logger.info(f"[REVIEW] {request.user.pk} rated {receiver.pk} {review.rating}/5")
        return Response(self.get_serializer(review).data, status=status.HTTP_201_CREATED)


# ============================================
# GOOGLE PLACES PROXY
# ============================================

def _float_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    return float(value)


def _places_call(func):
    """Run a Places lookup and map its failures to HTTP errors."""
    try:
        return func()
    except PlacesNotConfigured as e:
        return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    except PlacesError as e:
        return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)
    except ValueError:
        return Response({'error': 'Invalid coordinates'}, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def places_autocomplete(request):
    text = request.query_params.get('input', '').strip()
    if not text:
        return Response({'error': 'Input is required'}, status=status.HTTP_400_BAD_REQUEST)

    def lookup():
        radius = request.query_params.get('radius')
        return Response(GooglePlacesService.autocomplete(
            text,
            lat=_float_param(request, 'lat'),
            lng=_float_param(request, 'lng'),
            radius=int(radius) if radius else None,
            language=request.query_params.get('language', ''),
            types=request.query_params.get('types', ''),
            components=request.query_params.get('components', ''),
        ))
    return _places_call(lookup)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def places_search(request):
    query = request.query_params.get('query', '').strip()
    if not query:
        return Response({'error': 'Query is required'}, status=status.HTTP_400_BAD_REQUEST)

    def lookup():
        radius = request.query_params.get('radius')
        return Response(GooglePlacesService.search(
            query,
            lat=_float_param(request, 'lat'),
            lng=_float_param(request, 'lng'),
            radius=int(radius) if radius else None,
            place_type=request.query_params.get('type', ''),
            language=request.query_params.get('language', ''),
            region=request.query_params.get('region', ''),
        ))
    return _places_call(lookup)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def place_details(request, place_id):
    return _places_call(lambda: Response(GooglePlacesService.details(place_id)))


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def places_geocode(request):
    """?address= for forward geocoding, ?mode=reverse&lat=&lng= for reverse."""

    def lookup():
        if request.query_params.get('mode') == 'reverse':
            lat, lng = _float_param(request, 'lat'), _float_param(request, 'lng')
            if lat is None or lng is None:
                raise ValueError('lat and lng are required')
            result = GooglePlacesService.reverse_geocode(lat, lng)
        else:
            address = request.query_params.get('address', '').strip()
            if not address:
                return Response({'error': 'Address is required'}, status=status.HTTP_400_BAD_REQUEST)
            result = GooglePlacesService.geocode(address)

        if result is None:
            return Response({'error': 'No result found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(result)
    return _places_call(lookup)
