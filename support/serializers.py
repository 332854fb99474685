"""
Support App Serializers - Disputes
"""

from rest_framework import serializers

from core.serializers import PublicUserSerializer
from .models import Dispute, DisputeType, Refund


class RefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Refund
        fields = ['id', 'amount', 'status', 'transaction', 'created_at', 'completed_at']


class DisputeSerializer(serializers.ModelSerializer):
    reporter = PublicUserSerializer(read_only=True)
    involved = PublicUserSerializer(read_only=True)
    resolved_by = PublicUserSerializer(read_only=True)
    package_title = serializers.CharField(source='package.title', read_only=True, default=None)
    trip_title = serializers.CharField(source='trip.title', read_only=True, default=None)
    priority = serializers.ReadOnlyField()
    refund = RefundSerializer(read_only=True)

    class Meta:
        model = Dispute
        fields = [
            'id', 'reporter', 'involved', 'package', 'package_title', 'trip', 'trip_title',
            'dispute_type', 'title', 'description', 'evidence', 'status', 'priority',
            'package_status_before', 'resolution', 'resolved_by', 'resolved_at',
            'refund_amount', 'refund', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DisputeCreateSerializer(serializers.Serializer):
    """
    Payload to open a dispute. The assignment action supplies the package
    itself; the generic endpoint takes package_id or trip_id.
    """

    dispute_type = serializers.ChoiceField(choices=DisputeType.choices, default=DisputeType.OTHER)
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(max_length=5000)
    evidence = serializers.ListField(child=serializers.URLField(), required=False, default=list)
    package_id = serializers.UUIDField(required=False)
    trip_id = serializers.UUIDField(required=False)


class DisputeResolveSerializer(serializers.Serializer):
    """Dashboard resolution: 'resolved' settles, anything else closes."""

    status = serializers.CharField(default='resolved')
    resolution = serializers.CharField(allow_blank=True, required=False, default='')
    refund_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, default=0
    )
