"""
Support App Views - Disputes API
"""

import logging
from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from django.db.models import Q

from core.pagination import PageLimitPagination
from core.views import IsAdminUser
from .models import Dispute
from .serializers import DisputeSerializer, DisputeCreateSerializer
from .services import SupportService

logger = logging.getLogger(__name__)


class DisputeViewSet(mixins.ListModelMixin,
                     mixins.RetrieveModelMixin,
                     mixins.CreateModelMixin,
                     viewsets.GenericViewSet):
    """
    Disputes the caller reported or is involved in.
    Admins see every dispute and can take one into review.
    """

    serializer_class = DisputeSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = PageLimitPagination

    def get_queryset(self):
        qs = Dispute.objects.select_related(
            'reporter', 'involved', 'resolved_by', 'package', 'trip'
        )
        user = self.request.user
        if not user.is_admin:
            qs = qs.filter(Q(reporter=user) | Q(involved=user))
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter.upper())
        return qs

    def create(self, request, *args, **kwargs):
        from logistics.models import Package, Trip

        serializer = DisputeCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            package = trip = None
            if data.get('package_id'):
                package = Package.objects.select_related('trip', 'trip__traveler').get(pk=data['package_id'])
            elif data.get('trip_id'):
                trip = Trip.objects.get(pk=data['trip_id'])
            else:
                return Response({'error': 'package_id or trip_id is required'},
                                status=status.HTTP_400_BAD_REQUEST)

            dispute = SupportService.create_dispute(
                request.user,
                data['dispute_type'],
                data['description'],
                package=package,
                trip=trip,
                evidence=data.get('evidence'),
                title=data.get('title', ''),
            )
        except (Package.DoesNotExist, Trip.DoesNotExist):
            return Response({'error': 'Not found'}, status=status.HTTP_404_NOT_FOUND)
        except PermissionError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(DisputeSerializer(dispute).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=[IsAdminUser], url_path='start-review')
    def start_review(self, request, pk=None):
        dispute = self.get_object()
        try:
            SupportService.start_review(dispute, request.user)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(DisputeSerializer(dispute).data)
