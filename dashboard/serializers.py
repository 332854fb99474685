"""
Dashboard Serializers - admin-only representations and action payloads
"""

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken

from core.models import UserRole, SubscriptionTier, SubscriptionStatus
from core.serializers import UserSerializer
from logistics.models import PackageStatus, TripStatus
from messaging.models import Message

User = get_user_model()


class AdminUserSerializer(UserSerializer):
    """Full user record; admins may edit role, status and plan."""

    role = serializers.ChoiceField(choices=UserRole.choices, required=False)
    subscription_tier = serializers.ChoiceField(choices=SubscriptionTier.choices, required=False)
    subscription_status = serializers.ChoiceField(choices=SubscriptionStatus.choices, required=False)
    is_active = serializers.BooleanField(required=False)
    wallet_balance = serializers.DecimalField(
        source='wallet.balance', max_digits=12, decimal_places=2, read_only=True, default=None
    )

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['is_staff', 'wallet_balance']
        read_only_fields = [
            'id', 'email', 'is_staff',
            'is_phone_verified', 'is_email_verified', 'is_id_verified',
            'is_facial_verified', 'is_address_verified', 'is_verified',
            'verification_status', 'last_payment_date', 'date_joined', 'updated_at',
        ]


class UserMessageSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=150)
    message = serializers.CharField()


class PackageStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PackageStatus.choices)


class TripStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TripStatus.choices)


class AdminMessageSerializer(serializers.ModelSerializer):
    """Messages as seen by moderators, hidden ones included."""

    sender_email = serializers.EmailField(source='sender.email', read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'chat', 'sender', 'sender_email', 'content', 'message_type',
            'attachments', 'is_deleted', 'moderation_action', 'created_at',
        ]
        read_only_fields = fields


class ModerationSerializer(serializers.Serializer):
    # Validated by moderate_message so unknown actions answer 400 with its message
    action = serializers.CharField()


class RejectDocumentSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)


class SessionSerializer(serializers.ModelSerializer):
    """
    An issued refresh token seen as a login session.

    The token itself is never exposed.
    """

    user_email = serializers.EmailField(source='user.email', read_only=True, default=None)
    user_name = serializers.CharField(source='user.full_name', read_only=True, default=None)
    status = serializers.SerializerMethodField()
    revoked_at = serializers.SerializerMethodField()

    class Meta:
        model = OutstandingToken
        fields = ['id', 'jti', 'user', 'user_email', 'user_name', 'created_at', 'expires_at',
                  'status', 'revoked_at']
        read_only_fields = fields

    def get_status(self, obj):
        if self.get_revoked_at(obj) is not None:
            return 'revoked'
        return 'active' if obj.expires_at > timezone.now() else 'expired'

    def get_revoked_at(self, obj):
        blacklisted = getattr(obj, 'blacklistedtoken', None)
        return blacklisted.blacklisted_at if blacklisted is not None else None
