"""
CORE App - Custom User Model for AMENADE

Handles: Users (Senders, Travelers, Admins), profiles, identity verification,
phone verification codes, platform configuration and the admin audit trail.
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
from django.conf import settings


class UserRole(models.TextChoices):
    """User role enumeration."""
    SENDER = 'SENDER', 'Sender'
    TRAVELER = 'TRAVELER', 'Traveler'
    ADMIN = 'ADMIN', 'Administrator'


class VerificationStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    VERIFIED = 'VERIFIED', 'Verified'
    REJECTED = 'REJECTED', 'Rejected'


class SubscriptionTier(models.TextChoices):
    FREE = 'FREE', 'Free'
    STANDARD = 'STANDARD', 'Standard'
    PREMIUM = 'PREMIUM', 'Premium'


class SubscriptionStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)
        extra_fields.setdefault('is_email_verified', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as primary identifier.

    Key Business Logic:
    - is_verified is derived: True only when the five verification flags
      (phone, email, ID, facial, address) are all set
    - a subscription tier limits how many packages + trips can be posted
      per paid period (see core.services.subscription)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, verbose_name="Email")

    # Profile
    first_name = models.CharField(max_length=100, blank=True, verbose_name="First name")
    last_name = models.CharField(max_length=100, blank=True, verbose_name="Last name")
    phone_number = models.CharField(max_length=20, blank=True, verbose_name="Phone number")
    avatar = models.URLField(max_length=500, blank=True, verbose_name="Avatar URL")
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.SENDER,
        verbose_name="Role"
    )

    # Verification flags
    is_phone_verified = models.BooleanField(default=False, verbose_name="Phone verified")
    is_email_verified = models.BooleanField(default=False, verbose_name="Email verified")
    is_id_verified = models.BooleanField(default=False, verbose_name="ID verified")
    is_facial_verified = models.BooleanField(default=False, verbose_name="Face verified")
    is_address_verified = models.BooleanField(default=False, verbose_name="Address verified")
    is_verified = models.BooleanField(default=False, verbose_name="Fully verified")
    verification_status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
        verbose_name="Verification status"
    )

    # Subscription
    subscription_tier = models.CharField(
        max_length=20,
        choices=SubscriptionTier.choices,
        default=SubscriptionTier.FREE,
        verbose_name="Subscription plan"
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
        verbose_name="Subscription status"
    )
    last_payment_date = models.DateTimeField(null=True, blank=True, verbose_name="Last payment")

    # Django Auth Fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    VERIFICATION_FLAGS = (
        'is_phone_verified',
        'is_email_verified',
        'is_id_verified',
        'is_facial_verified',
        'is_address_verified',
    )

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role', 'is_active']),
            models.Index(fields=['verification_status']),
        ]

    def __str__(self):
        return f"{self.full_name or self.email} ({self.role})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def verification_count(self) -> int:
        return sum(1 for flag in self.VERIFICATION_FLAGS if getattr(self, flag))

    @property
    def verification_percentage(self) -> int:
        return round(self.verification_count * 100 / len(self.VERIFICATION_FLAGS))

    def refresh_verification(self):
        """
        Recompute is_verified from the five flags.
        Does not save; callers include the returned fields in update_fields.
        """
        self.is_verified = self.verification_count == len(self.VERIFICATION_FLAGS)
        if self.is_verified:
            self.verification_status = VerificationStatus.VERIFIED
        elif self.verification_status == VerificationStatus.VERIFIED:
            self.verification_status = VerificationStatus.PENDING
        return ['is_verified', 'verification_status']


class UserProfile(models.Model):
    """Extended public profile, created automatically with the user."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    bio = models.TextField(blank=True, max_length=500)
    occupation = models.CharField(max_length=100, blank=True)
    languages = models.JSONField(default=list, blank=True)
    current_city = models.CharField(max_length=100, blank=True)
    current_country = models.CharField(max_length=100, blank=True)
    time_zone = models.CharField(max_length=50, blank=True, default='UTC')

    # Notification preferences
    push_notifications = models.BooleanField(default=True)
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=False)

    # Reputation
    sender_rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    traveler_rating = models.DecimalField(max_digits=3, decimal_places=2, default=0)
    total_deliveries = models.PositiveIntegerField(default=0)
    total_trips = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "User profile"
        verbose_name_plural = "User profiles"

    def __str__(self):
        return f"Profile of {self.user.email}"


class DocumentType(models.TextChoices):
    NATIONAL_ID = 'national_id', 'National ID'
    PASSPORT = 'passport', 'Passport'
    DRIVERS_LICENSE = 'drivers_license', "Driver's license"
    FACIAL_PHOTO = 'facial_photo', 'Facial photo'
    ADDRESS_DOCUMENT = 'address_document', 'Address document'
    LEASE_AGREEMENT = 'lease_agreement', 'Lease agreement'
    UTILITY_BILL = 'utility_bill', 'Utility bill'
    BANK_STATEMENT = 'bank_statement', 'Bank statement'


# Which user flag a document proves once approved
DOCUMENT_FLAG_MAP = {
    DocumentType.NATIONAL_ID: 'is_id_verified',
    DocumentType.PASSPORT: 'is_id_verified',
    DocumentType.DRIVERS_LICENSE: 'is_id_verified',
    DocumentType.FACIAL_PHOTO: 'is_facial_verified',
    DocumentType.ADDRESS_DOCUMENT: 'is_address_verified',
    DocumentType.LEASE_AGREEMENT: 'is_address_verified',
    DocumentType.UTILITY_BILL: 'is_address_verified',
    DocumentType.BANK_STATEMENT: 'is_address_verified',
}


class VerificationDocument(models.Model):
    """A document uploaded by a user to prove identity, face or address."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='verification_documents'
    )
    document_type = models.CharField(max_length=30, choices=DocumentType.choices)
    document_url = models.URLField(max_length=500, verbose_name="Document URL")
    status = models.CharField(
        max_length=20,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING
    )
    rejection_reason = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_documents'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Verification document"
        verbose_name_plural = "Verification documents"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'document_type']),
        ]

    def __str__(self):
        return f"{self.get_document_type_display()} - {self.user.email} ({self.status})"

    @property
    def verification_flag(self) -> str:
        return DOCUMENT_FLAG_MAP[self.document_type]


class PhoneVerification(models.Model):
    """Pending SMS code for a user's phone number."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='phone_verification'
    )
    phone_number = models.CharField(max_length=20)
    code = models.CharField(max_length=6)
    expires_at = models.DateTimeField()
    attempts = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Phone verification"
        verbose_name_plural = "Phone verifications"

    def __str__(self):
        return f"{self.phone_number} (expires {self.expires_at:%Y-%m-%d %H:%M})"


class SystemConfig(models.Model):
    """Runtime-tunable platform setting, editable from the dashboard."""

    DEFAULTS = {
        'platform_fee_percent': ('10', 'Commission taken on each completed delivery (%)'),
        'min_package_price': ('5', 'Minimum offered price for a package'),
        'max_package_weight_kg': ('50', 'Maximum package weight accepted (kg)'),
        'support_email': ('support@amenade.com', 'Support contact address'),
        'maintenance_mode': ('false', 'Reject new posts while true'),
        'free_plan_post_limit': ('3', 'Posts per period on the FREE plan'),
        'standard_plan_post_limit': ('10', 'Posts per period on the STANDARD plan'),
        'premium_plan_post_limit': ('50', 'Posts per period on the PREMIUM plan'),
    }

    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "System setting"
        verbose_name_plural = "System settings"
        ordering = ['key']

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key, default=None):
        row = cls.objects.filter(key=key).values_list('value', flat=True).first()
        return row if row is not None else default

    @classmethod
    def seed_defaults(cls) -> int:
        """Create missing default keys. Returns the number created."""
        created = 0
        for key, (value, description) in cls.DEFAULTS.items():
            _, was_created = cls.objects.get_or_create(
                key=key,
                defaults={'value': value, 'description': description}
            )
            created += int(was_created)
        return created


class AdminActivityLog(models.Model):
    """Audit trail of admin mutations made through the dashboard."""

    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='admin_actions'
    )
    action = models.CharField(max_length=100)
    target_type = models.CharField(max_length=50)
    target_id = models.CharField(max_length=64)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Admin activity"
        verbose_name_plural = "Admin activity log"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['target_type', 'target_id']),
        ]

    def __str__(self):
        return f"{self.action} on {self.target_type}:{self.target_id}"

    @classmethod
    def record(cls, admin, action, target, details=None):
        return cls.objects.create(
            admin=admin,
            action=action,
            target_type=target.__class__.__name__,
            target_id=str(target.pk),
            details=details or {},
        )
