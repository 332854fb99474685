import logging
from decimal import Decimal
from django.db import transaction
from django.utils import timezone

from .models import Dispute, DisputeStatus, Refund, RefundStatus
from finance.models import WalletService, TransactionType

logger = logging.getLogger(__name__)


class SupportService:
    """
    Service for handling disputes and refunds.
    """

    @staticmethod
    def _parties(package=None, trip=None) -> set:
        if package is not None:
            parties = {package.sender_id}
            if package.trip_id:
                parties.add(package.trip.traveler_id)
            return parties
        parties = {trip.traveler_id}
        parties.update(trip.packages.values_list('sender_id', flat=True))
        return parties

    @staticmethod
    @transaction.atomic
    def create_dispute(reporter, dispute_type, description, package=None, trip=None,
                       involved=None, evidence=None, title=''):
        """
        Open a dispute about a package or a trip.

        The reporter must be a party of it. When the package is assigned,
        it is frozen in DISPUTED until the dispute is settled.
        """
        from logistics.models import PackageStatus
        from messaging.models import NotificationType
        from messaging.services import NotificationService

        if package is None and trip is None:
            raise ValueError("A dispute must reference a package or a trip")
        if not description or not description.strip():
            raise ValueError("A description is required")
        parties = SupportService._parties(package, trip)
        if trip is None and package is not None and package.trip_id:
            trip = package.trip
        if reporter.pk not in parties:
            raise PermissionError("Only parties of this delivery can open a dispute")

        if involved is None:
            others = parties - {reporter.pk}
            if not others:
                raise ValueError("No counter-party to open a dispute against")
            from django.contrib.auth import get_user_model
            involved = get_user_model().objects.get(pk=others.pop())
        elif involved.pk not in parties or involved.pk == reporter.pk:
            raise ValueError("The reported user is not the counter-party of this delivery")

        if package is not None and package.disputes.filter(
            status__in=[DisputeStatus.OPEN, DisputeStatus.IN_REVIEW]
        ).exists():
            raise ValueError("This package already has an open dispute")

        dispute = Dispute.objects.create(
            reporter=reporter,
            involved=involved,
            package=package,
            trip=trip,
            dispute_type=dispute_type,
            title=title,
            description=description.strip(),
            evidence=evidence or [],
        )

        if package is not None and package.trip_id and package.status in (
            PackageStatus.MATCHED, PackageStatus.IN_TRANSIT, PackageStatus.DELIVERED
        ):
            dispute.package_status_before = package.status
            dispute.save(update_fields=['package_status_before'])
            package.status = PackageStatus.DISPUTED
            package.save(update_fields=['status', 'updated_at'])

        logger.info(f"[DISPUTE] Created {dispute.id} by {reporter.pk}")

        try:
            NotificationService.notify(
                involved,
                NotificationType.DISPUTE_UPDATE,
                'A dispute was opened',
                f'{reporter.full_name or reporter.email} opened a dispute: {dispute.title}',
                package=package,
                trip=trip,
                metadata={'disputeId': str(dispute.id)},
            )
        except Exception as e:
            logger.error(f"[DISPUTE] Failed to send creation notification: {e}")

        return dispute

    @staticmethod
    def start_review(dispute, admin_user):
        if dispute.status != DisputeStatus.OPEN:
            raise ValueError("Only open disputes can be taken into review")

        dispute.status = DisputeStatus.IN_REVIEW
        dispute.resolved_by = admin_user
        dispute.save(update_fields=['status', 'resolved_by', 'updated_at'])
        logger.info(f"[DISPUTE] {dispute.id} in review by {admin_user.pk}")
        return dispute

    @staticmethod
    @transaction.atomic
    def resolve_dispute(dispute, admin_user, resolution, outcome='resolved',
                        refund_amount=Decimal('0.00')):
        """
        Settle a dispute and optionally refund the reporter.

        outcome 'resolved' → RESOLVED, anything else → CLOSED.
        """
        from logistics.models import PackageStatus
        from logistics.services.assignment import AssignmentService

        dispute = Dispute.objects.select_for_update().get(pk=dispute.pk)
        if dispute.is_closed:
            raise ValueError("This dispute is already closed")

        refund_amount = Decimal(str(refund_amount or '0'))
        if refund_amount < 0:
            raise ValueError("Refund amount cannot be negative")

        dispute.status = DisputeStatus.RESOLVED if outcome == 'resolved' else DisputeStatus.CLOSED
        dispute.resolution = resolution or ''
        dispute.resolved_by = admin_user
        dispute.resolved_at = timezone.now()
        dispute.refund_amount = refund_amount
        dispute.save()

        if refund_amount > 0:
            SupportService._trigger_refund(dispute)

        package = dispute.package
        if package is not None and package.status == PackageStatus.DISPUTED:
            if refund_amount > 0 and package.trip_id:
                AssignmentService.release_from_trip(package, PackageStatus.CANCELLED)
            else:
                package.status = dispute.package_status_before or PackageStatus.DELIVERED
                package.save(update_fields=['status', 'updated_at'])

        logger.info(f"[DISPUTE] {dispute.id} → {dispute.status} by {admin_user.pk}")
        SupportService._notify_parties(dispute)
        return dispute

    @staticmethod
    def _notify_parties(dispute):
        from messaging.models import NotificationType
        from messaging.services import NotificationService

        message = f'Your dispute "{dispute.title}" is now {dispute.get_status_display().lower()}.'
        if dispute.refund_amount > 0:
            message += f' A refund of {dispute.refund_amount} was issued.'

        for user in (dispute.reporter, dispute.involved):
            try:
                NotificationService.notify(
                    user,
                    NotificationType.DISPUTE_UPDATE,
                    'Dispute update',
                    message,
                    package=dispute.package,
                    trip=dispute.trip,
                    metadata={'disputeId': str(dispute.id), 'status': dispute.status},
                )
            except Exception as e:
                logger.error(f"[DISPUTE] Failed to notify {user.pk}: {e}")

    @staticmethod
    @transaction.atomic
    def _trigger_refund(dispute):
        """
        Internal method to process a refund linked to a dispute.
        """
        refund = Refund.objects.create(
            dispute=dispute,
            user=dispute.reporter,
            amount=dispute.refund_amount,
            reason=dispute.resolution
        )

        try:
            tx = WalletService.credit(
                user=refund.user,
                amount=refund.amount,
                transaction_type=TransactionType.REFUND,
                description=f"Dispute refund #{str(dispute.id)[:8]}",
                package=dispute.package
            )

            refund.transaction = tx
            refund.status = RefundStatus.COMPLETED
            refund.completed_at = timezone.now()
            refund.save()

            logger.info(f"[DISPUTE] Refund processed: {refund.id} for amount {refund.amount}")
        except Exception as e:
            refund.status = RefundStatus.FAILED
            refund.save()
            logger.error(f"[DISPUTE] Refund failed for dispute {dispute.id}: {e}")
            raise
