"""
LOGISTICS App - Packages, Trips & Matching for AMENADE

Handles: Packages, Trips, Tracking events, Safety confirmations, Reviews
"""

import uuid
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal


class PackageStatus(models.TextChoices):
    """Package lifecycle."""
    DRAFT = 'DRAFT', 'Draft'
    POSTED = 'POSTED', 'Posted'
    MATCHED = 'MATCHED', 'Matched with a trip'
    IN_TRANSIT = 'IN_TRANSIT', 'In transit'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELLED = 'CANCELLED', 'Cancelled'
    DISPUTED = 'DISPUTED', 'Disputed'


class PackagePriority(models.TextChoices):
    LOW = 'LOW', 'Low'
    NORMAL = 'NORMAL', 'Normal'
    HIGH = 'HIGH', 'High'
    URGENT = 'URGENT', 'Urgent'


class TripStatus(models.TextChoices):
    """Trip lifecycle."""
    POSTED = 'POSTED', 'Posted'
    ACTIVE = 'ACTIVE', 'Active'
    COMPLETED = 'COMPLETED', 'Completed'
    CANCELLED = 'CANCELLED', 'Cancelled'


class TransportMode(models.TextChoices):
    CAR = 'car', 'Car'
    PLANE = 'plane', 'Plane'
    TRAIN = 'train', 'Train'
    BUS = 'bus', 'Bus'
    SHIP = 'ship', 'Ship'
    OTHER = 'other', 'Other'


# Packages visible on the public marketplace
PUBLIC_PACKAGE_STATUSES = [PackageStatus.POSTED, PackageStatus.MATCHED, PackageStatus.IN_TRANSIT]
PUBLIC_TRIP_STATUSES = [TripStatus.POSTED, TripStatus.ACTIVE]

# A package carries a trip link exactly while in one of these states
ASSIGNED_PACKAGE_STATUSES = [
    PackageStatus.MATCHED,
    PackageStatus.IN_TRANSIT,
    PackageStatus.DELIVERED,
    PackageStatus.DISPUTED,
]


class Package(models.Model):
    """
    A shippable item a sender posts for delivery.

    Addresses are stored as the full JSON payload from the client plus
    denormalised city/country/coordinates used for filtering and radius search.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Actors
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sent_packages',
        verbose_name="Sender"
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_packages',
        verbose_name="Receiver"
    )
    trip = models.ForeignKey(
        'Trip',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='packages',
        verbose_name="Assigned trip"
    )

    # Description
    title = models.CharField(max_length=100)
    description = models.TextField(max_length=1000)
    category = models.CharField(max_length=50, blank=True)

    # Dimensions
    length_cm = models.FloatField(validators=[MinValueValidator(0.1)])
    width_cm = models.FloatField(validators=[MinValueValidator(0.1)])
    height_cm = models.FloatField(validators=[MinValueValidator(0.1)])
    weight_kg = models.FloatField(validators=[MinValueValidator(0.1)], verbose_name="Weight (kg)")

    value = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    is_fragile = models.BooleanField(default=False)
    requires_signature = models.BooleanField(default=False)

    # Locations
    pickup_address = models.JSONField(default=dict)
    pickup_city = models.CharField(max_length=100, db_index=True)
    pickup_country = models.CharField(max_length=100, db_index=True)
    pickup_latitude = models.FloatField(null=True, blank=True)
    pickup_longitude = models.FloatField(null=True, blank=True)
    delivery_address = models.JSONField(default=dict)
    delivery_city = models.CharField(max_length=100, db_index=True)
    delivery_country = models.CharField(max_length=100, db_index=True)
    delivery_latitude = models.FloatField(null=True, blank=True)
    delivery_longitude = models.FloatField(null=True, blank=True)

    pickup_date = models.DateTimeField()
    delivery_date = models.DateTimeField()

    # Pricing
    offered_price = models.DecimalField(max_digits=10, decimal_places=2)
    final_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='USD')

    special_instructions = models.TextField(blank=True, max_length=500)
    images = models.JSONField(default=list, blank=True)
    priority = models.CharField(
        max_length=10,
        choices=PackagePriority.choices,
        default=PackagePriority.NORMAL
    )
    status = models.CharField(
        max_length=20,
        choices=PackageStatus.choices,
        default=PackageStatus.POSTED,
        verbose_name="Status"
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    matched_at = models.DateTimeField(null=True, blank=True)
    picked_up_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Package"
        verbose_name_plural = "Packages"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at']),
            models.Index(fields=['sender', 'status']),
            models.Index(fields=['pickup_city', 'delivery_city']),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def volume_cm3(self) -> float:
        return self.length_cm * self.width_cm * self.height_cm

    @property
    def is_assigned(self) -> bool:
        return self.trip_id is not None


class Trip(models.Model):
    """A travel itinerary with spare carrying capacity."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    traveler = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='trips',
        verbose_name="Traveler"
    )
    title = models.CharField(max_length=100)
    description = models.TextField(blank=True, max_length=1000)

    origin_address = models.JSONField(default=dict)
    origin_city = models.CharField(max_length=100, db_index=True)
    origin_country = models.CharField(max_length=100, db_index=True)
    origin_latitude = models.FloatField(null=True, blank=True)
    origin_longitude = models.FloatField(null=True, blank=True)
    destination_address = models.JSONField(default=dict)
    destination_city = models.CharField(max_length=100, db_index=True)
    destination_country = models.CharField(max_length=100, db_index=True)
    destination_latitude = models.FloatField(null=True, blank=True)
    destination_longitude = models.FloatField(null=True, blank=True)

    departure_date = models.DateTimeField()
    arrival_date = models.DateTimeField()
    flexible_dates = models.BooleanField(default=False)

    # Capacity
    max_weight_kg = models.FloatField(validators=[MinValueValidator(0.1)], verbose_name="Max weight (kg)")
    available_space_kg = models.FloatField(
        validators=[MinValueValidator(0)],
        verbose_name="Remaining capacity (kg)"
    )
    max_length_cm = models.FloatField(null=True, blank=True)
    max_width_cm = models.FloatField(null=True, blank=True)
    max_height_cm = models.FloatField(null=True, blank=True)
    transport_mode = models.CharField(
        max_length=10,
        choices=TransportMode.choices,
        default=TransportMode.CAR
    )

    # Pricing
    price_per_kg = models.DecimalField(max_digits=10, decimal_places=2)
    minimum_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    maximum_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='USD')

    accepted_package_types = models.JSONField(default=list, blank=True)
    restrictions = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=20,
        choices=TripStatus.choices,
        default=TripStatus.POSTED,
        verbose_name="Status"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Trip"
        verbose_name_plural = "Trips"
        ordering = ['departure_date']
        indexes = [
            models.Index(fields=['status', 'departure_date']),
            models.Index(fields=['origin_city', 'destination_city']),
        ]

    def __str__(self):
        return f"{self.origin_city} → {self.destination_city} ({self.status})"

    def save(self, *args, **kwargs):
        if self._state.adding and self.available_space_kg is None:
            self.available_space_kg = self.max_weight_kg
        super().save(*args, **kwargs)

    def can_carry(self, weight_kg: float) -> bool:
        return self.available_space_kg >= weight_kg


class TrackingEvent(models.Model):
    """Timeline entry for a package."""

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='tracking_events')
    event = models.CharField(max_length=50)
    description = models.CharField(max_length=255, blank=True)
    location = models.CharField(max_length=255, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Tracking event"
        verbose_name_plural = "Tracking events"
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.event} - {str(self.package_id)[:8]}"


class ConfirmationType(models.TextChoices):
    ASSIGNMENT = 'ASSIGNMENT', 'Assignment'
    PICKUP = 'PICKUP', 'Pickup'
    DELIVERY = 'DELIVERY', 'Delivery'


class SafetyConfirmation(models.Model):
    """
    Record of the safety checklist a user ticked before an assignment.
    Reviewed by admins from the dashboard.
    """

    REQUIRED_CONFIRMATIONS = (
        'legalCompliance',
        'damageInspection',
        'accurateDescription',
        'safetyMeasures',
        'termsAcceptance',
    )

    package = models.ForeignKey(Package, on_delete=models.CASCADE, related_name='safety_confirmations')
    trip = models.ForeignKey(
        Trip,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='safety_confirmations'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='safety_confirmations'
    )
    confirmation_type = models.CharField(
        max_length=20,
        choices=ConfirmationType.choices,
        default=ConfirmationType.ASSIGNMENT
    )
    confirmations = models.JSONField(default=dict)
    confirmed_at = models.DateTimeField(auto_now_add=True)
    is_verified_by_admin = models.BooleanField(default=False)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_safety_confirmations'
    )
    verified_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Safety confirmation"
        verbose_name_plural = "Safety confirmations"
        ordering = ['-confirmed_at']

    def __str__(self):
        return f"{self.confirmation_type} by {self.user_id} on {str(self.package_id)[:8]}"


class ReviewCategory(models.TextChoices):
    DELIVERY = 'delivery', 'Delivery'
    COMMUNICATION = 'communication', 'Communication'
    RELIABILITY = 'reliability', 'Reliability'


class Review(models.Model):
    """
    Feedback one party of a delivered package leaves about the other.
    Saving a review refreshes the receiver's rating on their profile.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    giver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews_given'
    )
    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reviews_received'
    )
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        help_text="1 (poor) to 5 (excellent)"
    )
    comment = models.TextField(blank=True, max_length=1000)
    category = models.CharField(
        max_length=20,
        choices=ReviewCategory.choices,
        default=ReviewCategory.DELIVERY
    )
    package = models.ForeignKey(
        Package,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='reviews'
    )
    trip = models.ForeignKey(
        Trip,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Review"
        verbose_name_plural = "Reviews"
        ordering = ['-created_at']
        # One review per package per direction
        unique_together = ['package', 'giver', 'receiver']
        indexes = [
            models.Index(fields=['receiver', 'created_at']),
        ]

    def __str__(self):
        return f"{self.giver} → {self.receiver}: {self.rating}"

    def save(self, *args, **kwargs):
        super().save(*args, **kwargs)
        self._update_receiver_rating()

    def _update_receiver_rating(self):
        """Recompute the receiver's sender or traveler rating."""
        from django.db.models import Avg

        # Rated as a sender when they shipped the reviewed package
        as_sender = self.package_id is not None and self.package.sender_id == self.receiver_id
        filters = {'receiver': self.receiver}
        if as_sender:
            filters['package__sender'] = self.receiver
        else:
            filters['package__trip__traveler'] = self.receiver

        avg = Review.objects.filter(**filters).aggregate(avg=Avg('rating'))['avg'] or 0
        field = 'sender_rating' if as_sender else 'traveler_rating'

        from core.models import UserProfile
        profile, _ = UserProfile.objects.get_or_create(user=self.receiver)
        setattr(profile, field, round(Decimal(str(avg)), 2))
        profile.save(update_fields=[field, 'updated_at'])
