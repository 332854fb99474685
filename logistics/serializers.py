"""
Logistics App Serializers - Packages, Trips, Tracking & Reviews
"""

from django.db import transaction
from django.db.models import F
from django.utils import timezone
from rest_framework import serializers

from core.serializers import PublicUserSerializer
from .models import (
    Package, PackageStatus, Trip, TripStatus, TrackingEvent, SafetyConfirmation,
    Review,
)


# Statuses an owner may set directly; the rest go through assignment actions
OWNER_PACKAGE_STATUSES = [PackageStatus.DRAFT, PackageStatus.POSTED, PackageStatus.CANCELLED]
OWNER_TRIP_STATUSES = [TripStatus.POSTED, TripStatus.ACTIVE, TripStatus.COMPLETED, TripStatus.CANCELLED]


def clean_address(value, label):
    """
    Validate an address payload {street, city, state, country, postalCode,
    latitude, longitude, formattedAddress}. City and country are required.
    """
    if not isinstance(value, dict):
        raise serializers.ValidationError(f"{label} must be an object.")
    missing = [key for key in ('city', 'country') if not str(value.get(key, '')).strip()]
    if missing:
        raise serializers.ValidationError(f"{label} requires: {', '.join(missing)}.")

    for key, bound in (('latitude', 90), ('longitude', 180)):
        coord = value.get(key)
        if coord in (None, ''):
            continue
        try:
            coord = float(coord)
        except (TypeError, ValueError):
            raise serializers.ValidationError(f"{label} {key} must be a number.")
        if not -bound <= coord <= bound:
            raise serializers.ValidationError(f"{label} {key} is out of range.")
        value[key] = coord
    return value


def denormalise_address(attrs, json_field, prefix):
    """Copy city/country/coordinates out of the address JSON into columns."""
    address = attrs.get(json_field)
    if address is None:
        return
    attrs[f'{prefix}_city'] = address['city'].strip()
    attrs[f'{prefix}_country'] = address['country'].strip()
    attrs[f'{prefix}_latitude'] = address.get('latitude') if address.get('latitude') != '' else None
    attrs[f'{prefix}_longitude'] = address.get('longitude') if address.get('longitude') != '' else None


def check_future(attrs, instance, fields):
    """New values for the given date fields must lie in the future."""
    now = timezone.now()
    errors = {}
    for field in fields:
        value = attrs.get(field)
        if value is None:
            continue
        if instance is not None and getattr(instance, field) == value:
            continue
        if value <= now:
            errors[field] = "Date must be in the future."
    if errors:
        raise serializers.ValidationError(errors)


class TripSummarySerializer(serializers.ModelSerializer):
    traveler = PublicUserSerializer(read_only=True)

    class Meta:
        model = Trip
        fields = [
            'id', 'title', 'traveler', 'origin_city', 'destination_city',
            'departure_date', 'arrival_date', 'transport_mode', 'status',
        ]


class PackageSerializer(serializers.ModelSerializer):
    """Full serializer for Package model."""

    sender = PublicUserSerializer(read_only=True)
    trip = TripSummarySerializer(read_only=True)
    pickup_address = serializers.JSONField()
    delivery_address = serializers.JSONField()
    status = serializers.ChoiceField(choices=OWNER_PACKAGE_STATUSES, required=False)
    volume_cm3 = serializers.ReadOnlyField()

    class Meta:
        model = Package
        fields = [
            'id', 'sender', 'receiver', 'trip',
            'title', 'description', 'category',
            'length_cm', 'width_cm', 'height_cm', 'weight_kg', 'volume_cm3',
            'value', 'is_fragile', 'requires_signature',
            'pickup_address', 'pickup_city', 'pickup_country', 'pickup_latitude', 'pickup_longitude',
            'delivery_address', 'delivery_city', 'delivery_country', 'delivery_latitude', 'delivery_longitude',
            'pickup_date', 'delivery_date',
            'offered_price', 'final_price', 'currency',
            'special_instructions', 'images', 'priority', 'status',
            'created_at', 'updated_at', 'matched_at', 'picked_up_at', 'delivered_at',
        ]
        read_only_fields = [
            'id', 'receiver', 'final_price',
            'pickup_city', 'pickup_country', 'pickup_latitude', 'pickup_longitude',
            'delivery_city', 'delivery_country', 'delivery_latitude', 'delivery_longitude',
            'created_at', 'updated_at', 'matched_at', 'picked_up_at', 'delivered_at',
        ]

    def validate_pickup_address(self, value):
        return clean_address(value, 'Pickup address')

    def validate_delivery_address(self, value):
        return clean_address(value, 'Delivery address')

    def validate_offered_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Price must be positive.")
        return value

    def validate_images(self, value):
        if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
            raise serializers.ValidationError("Images must be a list of URLs.")
        return value

    def validate(self, attrs):
        instance = self.instance
        check_future(attrs, instance, ['pickup_date', 'delivery_date'])

        pickup = attrs.get('pickup_date', getattr(instance, 'pickup_date', None))
        delivery = attrs.get('delivery_date', getattr(instance, 'delivery_date', None))
        if pickup and delivery and delivery < pickup:
            raise serializers.ValidationError({'delivery_date': "Delivery date must be after pickup date."})

        if instance is not None:
            if instance.status in (PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED, PackageStatus.DISPUTED):
                raise serializers.ValidationError(
                    f"Cannot update a package that is {instance.get_status_display().lower()}."
                )
            if instance.is_assigned:
                if 'weight_kg' in attrs and attrs['weight_kg'] != instance.weight_kg:
                    raise serializers.ValidationError({'weight_kg': "Cannot change the weight of an assigned package."})
                if 'status' in attrs and attrs['status'] != instance.status:
                    raise serializers.ValidationError({'status': "Cancel the assignment first."})

        denormalise_address(attrs, 'pickup_address', 'pickup')
        denormalise_address(attrs, 'delivery_address', 'delivery')
        return attrs


class TripSerializer(serializers.ModelSerializer):
    """Full serializer for Trip model."""

    traveler = PublicUserSerializer(read_only=True)
    origin_address = serializers.JSONField()
    destination_address = serializers.JSONField()
    status = serializers.ChoiceField(choices=OWNER_TRIP_STATUSES, required=False)
    package_count = serializers.SerializerMethodField()

    class Meta:
        model = Trip
        fields = [
            'id', 'traveler', 'title', 'description',
            'origin_address', 'origin_city', 'origin_country', 'origin_latitude', 'origin_longitude',
            'destination_address', 'destination_city', 'destination_country',
            'destination_latitude', 'destination_longitude',
            'departure_date', 'arrival_date', 'flexible_dates',
            'max_weight_kg', 'available_space_kg', 'max_length_cm', 'max_width_cm', 'max_height_cm',
            'transport_mode', 'price_per_kg', 'minimum_price', 'maximum_price', 'currency',
            'accepted_package_types', 'restrictions', 'status', 'package_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'available_space_kg',
            'origin_city', 'origin_country', 'origin_latitude', 'origin_longitude',
            'destination_city', 'destination_country', 'destination_latitude', 'destination_longitude',
            'created_at', 'updated_at',
        ]

    def get_package_count(self, obj):
        return obj.packages.count()

    def validate_origin_address(self, value):
        return clean_address(value, 'Origin address')

    def validate_destination_address(self, value):
        return clean_address(value, 'Destination address')

    def validate(self, attrs):
        instance = self.instance
        check_future(attrs, instance, ['departure_date', 'arrival_date'])

        departure = attrs.get('departure_date', getattr(instance, 'departure_date', None))
        arrival = attrs.get('arrival_date', getattr(instance, 'arrival_date', None))
        if departure and arrival and arrival < departure:
            raise serializers.ValidationError({'arrival_date': "Arrival date must be after departure date."})

        minimum = attrs.get('minimum_price', getattr(instance, 'minimum_price', None))
        maximum = attrs.get('maximum_price', getattr(instance, 'maximum_price', None))
        if minimum is not None and maximum is not None and minimum > maximum:
            raise serializers.ValidationError({'maximum_price': "Maximum price must be at least the minimum price."})

        for field in ('price_per_kg', 'max_length_cm', 'max_width_cm', 'max_height_cm'):
            if attrs.get(field) is not None and attrs[field] <= 0:
                raise serializers.ValidationError({field: "Must be positive."})

        if instance is not None:
            if instance.status in (TripStatus.COMPLETED, TripStatus.CANCELLED):
                raise serializers.ValidationError(f"Cannot update a {instance.status.lower()} trip.")
            if 'max_weight_kg' in attrs:
                booked = instance.max_weight_kg - instance.available_space_kg
                if attrs['max_weight_kg'] < booked:
                    raise serializers.ValidationError({
                        'max_weight_kg': f"{booked:g} kg are already booked on this trip."
                    })
            if attrs.get('status') == TripStatus.CANCELLED and instance.packages.exists():
                raise serializers.ValidationError({'status': "Cancel the package assignments first."})

        denormalise_address(attrs, 'origin_address', 'origin')
        denormalise_address(attrs, 'destination_address', 'destination')
        return attrs

    @transaction.atomic
    def update(self, instance, validated_data):
        if 'max_weight_kg' in validated_data:
            # Re-read under lock: assignments may have booked space since validate()
            locked = Trip.objects.select_for_update().get(pk=instance.pk)
            booked = locked.max_weight_kg - locked.available_space_kg
            if validated_data['max_weight_kg'] < booked:
                raise serializers.ValidationError({
                    'max_weight_kg': f"{booked:g} kg are already booked on this trip."
                })
            delta = validated_data['max_weight_kg'] - locked.max_weight_kg
            Trip.objects.filter(pk=instance.pk).update(
                available_space_kg=F('available_space_kg') + delta
            )
            instance.refresh_from_db(fields=['available_space_kg'])
        return super().update(instance, validated_data)


class TrackingEventSerializer(serializers.ModelSerializer):
    package_title = serializers.CharField(source='package.title', read_only=True)

    class Meta:
        model = TrackingEvent
        fields = ['id', 'package', 'package_title', 'event', 'description', 'location', 'created_by', 'timestamp']


class SafetyConfirmationSerializer(serializers.ModelSerializer):
    user = PublicUserSerializer(read_only=True)
    package_title = serializers.CharField(source='package.title', read_only=True)
    trip_title = serializers.CharField(source='trip.title', read_only=True, default=None)

    class Meta:
        model = SafetyConfirmation
        fields = [
            'id', 'package', 'package_title', 'trip', 'trip_title', 'user',
            'confirmation_type', 'confirmations', 'confirmed_at',
            'is_verified_by_admin', 'verified_by', 'verified_at',
        ]


class AssignmentSerializer(serializers.Serializer):
    """Payload of POST /api/assignments/."""

    package_id = serializers.UUIDField()
    trip_id = serializers.UUIDField()
    confirmations = serializers.DictField(child=serializers.BooleanField())
    notification = serializers.ChoiceField(choices=['TO_TRIP', 'TO_PACKAGE'], default='TO_TRIP')


class ReviewSerializer(serializers.ModelSerializer):
    giver = PublicUserSerializer(read_only=True)
    receiver = PublicUserSerializer(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'giver', 'receiver', 'rating', 'comment', 'category', 'package', 'trip', 'created_at']
        read_only_fields = ['id', 'trip', 'created_at']
        # Uniqueness is checked against the request user in the view
        validators = []

    def validate(self, attrs):
        package = attrs.get('package')
        if package is None:
            raise serializers.ValidationError({'package': "A delivered package is required."})
        if package.status != PackageStatus.DELIVERED or package.trip is None:
            raise serializers.ValidationError({'package': "Only delivered packages can be reviewed."})
        return attrs
