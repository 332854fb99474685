"""
LOGISTICS App - Assignment Service for AMENADE

Pairs a package with a trip and moves the pairing through its lifecycle:
MATCHED → IN_TRANSIT (pickup) → DELIVERED, or back to POSTED on cancel.
"""

import json
import logging
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from logistics.models import (
    Package, PackageStatus, Trip, TripStatus, TrackingEvent,
    SafetyConfirmation, ConfirmationType,
)

logger = logging.getLogger(__name__)


# ============================================
# ASSIGNMENT CONFIGURATION
# ============================================

NOTIFY_TRIP = 'TO_TRIP'
NOTIFY_PACKAGE = 'TO_PACKAGE'

ASSIGNABLE_TRIP_STATUSES = [TripStatus.POSTED, TripStatus.ACTIVE]


class AssignmentService:
    """
    All mutations lock the package and trip rows so concurrent requests
    cannot double-book a package or overdraw a trip's capacity.
    """

    @staticmethod
    @transaction.atomic
    def create_assignment(package_id, trip_id, confirmations: dict, user,
                          notification: str = NOTIFY_TRIP,
                          confirmation_type: str = ConfirmationType.ASSIGNMENT) -> dict:
        """
        Assign a package to a trip.

        Raises:
            ValueError: rule violation (message is safe to return to the client)
            Package.DoesNotExist / Trip.DoesNotExist
        """
        from messaging.models import NotificationType
        from messaging.services import ChatService, NotificationService

        missing = [k for k in SafetyConfirmation.REQUIRED_CONFIRMATIONS if k not in confirmations]
        if missing or not all(bool(v) for v in confirmations.values()):
            raise ValueError("All safety confirmations must be accepted")

        package = Package.objects.select_for_update(of=('self',)).select_related('sender').get(pk=package_id)
        trip = Trip.objects.select_for_update(of=('self',)).select_related('traveler').get(pk=trip_id)

        if user.pk not in (package.sender_id, trip.traveler_id) and not user.is_admin:
            raise PermissionError("Only the sender or the traveler can create this assignment")
        if package.trip_id:
            raise ValueError("Package is already assigned to a trip")
        if package.status != PackageStatus.POSTED:
            raise ValueError(f"Package cannot be assigned while {package.status}")
        if trip.status not in ASSIGNABLE_TRIP_STATUSES:
            raise ValueError(f"Trip is not accepting packages ({trip.status})")
        if not trip.can_carry(package.weight_kg):
            raise ValueError(
                "This package exceeds the remaining capacity of the trip "
                f"({trip.available_space_kg:g} kg available, {package.weight_kg:g} kg required)"
            )

        now = timezone.now()
        package.trip = trip
        package.status = PackageStatus.MATCHED
        package.matched_at = now
        package.save(update_fields=['trip', 'status', 'matched_at', 'updated_at'])

        trip.available_space_kg = F('available_space_kg') - package.weight_kg
        trip.save(update_fields=['available_space_kg', 'updated_at'])
        trip.refresh_from_db(fields=['available_space_kg'])

        chat = ChatService.find_or_create_assignment_chat(package, trip)

        if notification == NOTIFY_PACKAGE:
            TrackingEvent.objects.create(
                package=package,
                event='MATCHED',
                description=f"Package matched with trip: {trip.title}",
                location=json.dumps(trip.origin_address),
                created_by=user,
            )
            NotificationService.notify(
                package.sender,
                NotificationType.PACKAGE_MATCH,
                'Package Matched!',
                f'Your package "{package.title}" has been matched with a trip.',
                package=package,
                chat=chat,
            )

        NotificationService.notify(
            trip.traveler,
            NotificationType.TRIP_REQUEST,
            'New Package Assignment',
            f'A package has been assigned to your trip "{trip.title}".',
            trip=trip,
            chat=chat,
        )

        SafetyConfirmation.objects.create(
            package=package,
            trip=trip,
            user=user,
            confirmation_type=confirmation_type,
            confirmations=confirmations,
        )

        logger.info(
            f"[ASSIGNMENT] Package {str(package.id)[:8]} → trip {str(trip.id)[:8]} "
            f"({package.weight_kg:g} kg, {trip.available_space_kg:g} kg left)"
        )
        return {'package': package, 'chat': chat, 'success': True}

    # ============================================
    # AVAILABLE PAIRINGS
    # ============================================

    @staticmethod
    def available_trips_for(package, traveler):
        """The traveler's open trips that can still carry the package."""
        return Trip.objects.filter(
            traveler=traveler,
            status=TripStatus.POSTED,
            available_space_kg__gte=package.weight_kg,
        ).select_related('traveler').order_by('departure_date')

    @staticmethod
    def available_packages_for(trip, sender):
        """The sender's posted packages not yet assigned."""
        return Package.objects.filter(
            sender=sender,
            status=PackageStatus.POSTED,
            trip__isnull=True,
        ).select_related('sender').order_by('pickup_date')

    # ============================================
    # LIFECYCLE ACTIONS
    # ============================================

    @staticmethod
    def _lock(package_id) -> Package:
        return Package.objects.select_for_update(of=('self',)).select_related(
            'sender', 'trip', 'trip__traveler'
        ).get(pk=package_id)

    @staticmethod
    @transaction.atomic
    def confirm_pickup(package_id, user) -> Package:
        """Traveler picked the package up: MATCHED → IN_TRANSIT."""
        from messaging.models import NotificationType
        from messaging.services import NotificationService

        package = AssignmentService._lock(package_id)
        if not package.trip or package.trip.traveler_id != user.pk:
            raise PermissionError("Only the assigned traveler can confirm pickup")
        if package.status != PackageStatus.MATCHED:
            raise ValueError(f"Cannot confirm pickup of a {package.status} package")

        package.status = PackageStatus.IN_TRANSIT
        package.picked_up_at = timezone.now()
        package.save(update_fields=['status', 'picked_up_at', 'updated_at'])

        if package.trip.status == TripStatus.POSTED:
            Trip.objects.filter(pk=package.trip_id).update(status=TripStatus.ACTIVE)

        TrackingEvent.objects.create(
            package=package,
            event='PICKED_UP',
            description='Package picked up by the traveler',
            location=package.pickup_city,
            created_by=user,
        )
        NotificationService.notify(
            package.sender,
            NotificationType.SYSTEM_ALERT,
            'Package picked up',
            f'"{package.title}" is now on its way.',
            package=package,
        )
        logger.info(f"[ASSIGNMENT] Pickup confirmed for {str(package.id)[:8]}")
        return package

    @staticmethod
    @transaction.atomic
    def mark_delivered(package_id, user) -> Package:
        """IN_TRANSIT → DELIVERED. Either party of the assignment may confirm."""
        from core.models import UserProfile
        from messaging.models import NotificationType
        from messaging.services import NotificationService

        package = AssignmentService._lock(package_id)
        if not package.trip or user.pk not in (package.sender_id, package.trip.traveler_id):
            raise PermissionError("Only the sender or the assigned traveler can confirm delivery")
        if package.status != PackageStatus.IN_TRANSIT:
            raise ValueError(f"Cannot mark a {package.status} package as delivered")

        package.status = PackageStatus.DELIVERED
        package.delivered_at = timezone.now()
        package.save(update_fields=['status', 'delivered_at', 'updated_at'])

        UserProfile.objects.filter(user=package.trip.traveler).update(
            total_deliveries=F('total_deliveries') + 1
        )

        TrackingEvent.objects.create(
            package=package,
            event='DELIVERED',
            description='Package delivered',
            location=package.delivery_city,
            created_by=user,
        )
        for recipient in (package.sender, package.trip.traveler):
            NotificationService.notify(
                recipient,
                NotificationType.DELIVERY_CONFIRMATION,
                'Delivery confirmed',
                f'"{package.title}" has been delivered.',
                package=package,
                trip=package.trip,
            )
        logger.info(f"[ASSIGNMENT] Package {str(package.id)[:8]} delivered")
        return package

    @staticmethod
    @transaction.atomic
    def cancel(package_id, user) -> Package:
        """Undo a MATCHED assignment: package back to POSTED, capacity restored."""
        from messaging.models import NotificationType
        from messaging.services import NotificationService

        package = AssignmentService._lock(package_id)
        if not package.trip:
            raise ValueError("Package is not assigned to a trip")
        traveler = package.trip.traveler
        if user.pk not in (package.sender_id, traveler.pk) and not user.is_admin:
            raise PermissionError("Only the sender or the assigned traveler can cancel")
        if package.status != PackageStatus.MATCHED:
            raise ValueError("Only matched assignments can be cancelled")

        trip = AssignmentService.release_from_trip(package, PackageStatus.POSTED)

        TrackingEvent.objects.create(
            package=package,
            event='UNASSIGNED',
            description=f"Assignment to trip {trip.title} cancelled",
            created_by=user,
        )
        other = traveler if user.pk == package.sender_id else package.sender
        NotificationService.notify(
            other,
            NotificationType.SYSTEM_ALERT,
            'Assignment cancelled',
            f'The assignment of "{package.title}" to "{trip.title}" was cancelled.',
            package=package,
            trip=trip,
        )
        logger.info(f"[ASSIGNMENT] Cancelled {str(package.id)[:8]} from trip {str(trip.id)[:8]}")
        return package

    @staticmethod
    def release_from_trip(package, new_status) -> Trip:
        """
        Unlink a package from its trip and give the weight back.
        Must run inside the caller's transaction. Writes the package row
        before the trip row, the same order create_assignment locks them.
        """
        trip = package.trip
        package.trip = None
        package.status = new_status
        package.matched_at = None
        package.save(update_fields=['trip', 'status', 'matched_at', 'updated_at'])
        Trip.objects.filter(pk=trip.pk).update(
            available_space_kg=F('available_space_kg') + package.weight_kg
        )
        trip.refresh_from_db(fields=['available_space_kg'])
        return trip
