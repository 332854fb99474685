"""
Core App Serializers - Accounts, Profiles & Verification
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import (
    UserProfile, UserRole, VerificationDocument, DocumentType, SystemConfig,
    AdminActivityLog,
)

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model (read operations)."""

    full_name = serializers.ReadOnlyField()
    verification_percentage = serializers.ReadOnlyField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'phone_number',
            'avatar', 'role',
            'is_phone_verified', 'is_email_verified', 'is_id_verified',
            'is_facial_verified', 'is_address_verified', 'is_verified',
            'verification_status', 'verification_percentage',
            'subscription_tier', 'subscription_status', 'last_payment_date',
            'is_active', 'date_joined', 'updated_at',
        ]
        read_only_fields = [
            'id', 'email', 'role',
            'is_phone_verified', 'is_email_verified', 'is_id_verified',
            'is_facial_verified', 'is_address_verified', 'is_verified',
            'verification_status', 'subscription_tier', 'subscription_status',
            'last_payment_date', 'is_active', 'date_joined', 'updated_at',
        ]


class PublicUserSerializer(serializers.ModelSerializer):
    """Embedded in packages, trips, chats and reviews."""

    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'avatar', 'is_verified']


class UserCreateSerializer(serializers.ModelSerializer):
    """Serializer for user registration."""

    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password]
    )
    role = serializers.ChoiceField(
        choices=[UserRole.SENDER, UserRole.TRAVELER],
        default=UserRole.SENDER
    )

    class Meta:
        model = User
        fields = ['email', 'password', 'first_name', 'last_name', 'phone_number', 'role']

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("An account with this email already exists.")
        return value.lower()

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT pair plus the user payload the client stores after login."""

    def validate(self, attrs):
        attrs[self.username_field] = attrs.get(self.username_field, '').lower()
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data


class UserProfileSerializer(serializers.ModelSerializer):
    first_name = serializers.CharField(source='user.first_name', required=False, allow_blank=True)
    last_name = serializers.CharField(source='user.last_name', required=False, allow_blank=True)
    phone_number = serializers.CharField(source='user.phone_number', required=False, allow_blank=True)
    avatar = serializers.URLField(source='user.avatar', required=False, allow_blank=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    is_verified = serializers.BooleanField(source='user.is_verified', read_only=True)

    class Meta:
        model = UserProfile
        fields = [
            'email', 'first_name', 'last_name', 'phone_number', 'avatar', 'is_verified',
            'bio', 'occupation', 'languages', 'current_city', 'current_country', 'time_zone',
            'push_notifications', 'email_notifications', 'sms_notifications',
            'sender_rating', 'traveler_rating', 'total_deliveries', 'total_trips',
            'updated_at',
        ]
        read_only_fields = [
            'sender_rating', 'traveler_rating', 'total_deliveries', 'total_trips', 'updated_at',
        ]

    def update(self, instance, validated_data):
        user_data = validated_data.pop('user', {})
        if user_data:
            user = instance.user
            # A new phone number has to be verified again
            if 'phone_number' in user_data and user_data['phone_number'] != user.phone_number:
                user.is_phone_verified = False
                user.refresh_verification()
            for attr, value in user_data.items():
                setattr(user, attr, value)
            user.save()
        return super().update(instance, validated_data)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, validators=[validate_password])

    def validate_current_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError("Current password is incorrect.")
        return value


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()
    password = serializers.CharField(write_only=True, validators=[validate_password])


class SendPhoneCodeSerializer(serializers.Serializer):
    phone_number = serializers.CharField(max_length=20)


class VerifyPhoneCodeSerializer(serializers.Serializer):
    code = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': 'Code must be 6 digits.'})


class VerificationDocumentSerializer(serializers.ModelSerializer):
    user = PublicUserSerializer(read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = VerificationDocument
        fields = [
            'id', 'user', 'user_email', 'document_type', 'document_url', 'status',
            'rejection_reason', 'verified_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'status', 'rejection_reason', 'verified_at', 'created_at', 'updated_at']


class DocumentUploadSerializer(serializers.Serializer):
    document_type = serializers.ChoiceField(choices=DocumentType.choices)
    document_url = serializers.URLField(max_length=500)


class SystemConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = SystemConfig
        fields = ['id', 'key', 'value', 'description', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class AdminActivityLogSerializer(serializers.ModelSerializer):
    admin_email = serializers.EmailField(source='admin.email', read_only=True, default=None)

    class Meta:
        model = AdminActivityLog
        fields = ['id', 'admin', 'admin_email', 'action', 'target_type', 'target_id', 'details', 'created_at']
