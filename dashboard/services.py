"""
DASHBOARD App - Metrics for the admin dashboard

Every section returns plain dicts ready for a DRF Response. The overview
is expensive and cached; section metrics are computed on demand.
"""

import logging
from typing import Dict, Any
from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import Sum, Avg, Count, Q
from django.utils import timezone
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken, BlacklistedToken

from core.models import User, UserRole, VerificationDocument, VerificationStatus, SystemConfig, AdminActivityLog
from finance.models import Wallet, Transaction, TransactionType, TransactionStatus, PaymentMethod
from logistics.models import (
    Package, PackageStatus, Trip, TripStatus, TrackingEvent, SafetyConfirmation, Review,
    ASSIGNED_PACKAGE_STATUSES,
)
from messaging.models import Chat, Message, Notification
from support.models import Dispute, DisputeStatus

logger = logging.getLogger(__name__)

OVERVIEW_CACHE_KEY = 'dashboard:overview'

# Wallet balance bands used by the wallet list filter and metrics
BALANCE_BANDS = {
    'high': Q(balance__gt=1000),
    'medium': Q(balance__gte=100, balance__lte=1000),
    'low': Q(balance__gt=0, balance__lt=100),
    'zero': Q(balance=0),
}


def _by(queryset, field: str) -> Dict[str, int]:
    return {
        row[field]: row['count']
        for row in queryset.values(field).annotate(count=Count('id')).order_by()
    }


def _total(queryset, field: str = 'amount'):
    return queryset.aggregate(total=Sum(field))['total'] or Decimal('0.00')


class DashboardMetricsService:
    """
    KPI calculation for the admin dashboard.
    """

    @staticmethod
    def overview(refresh: bool = False) -> Dict[str, Any]:
        """
        Platform-wide overview, cached for DASHBOARD_METRICS_TTL seconds.

        The scheduled refresh task calls this with refresh=True.
        """
        if not refresh:
            cached = cache.get(OVERVIEW_CACHE_KEY)
            if cached is not None:
                return cached

        data = DashboardMetricsService._build_overview()
        cache.set(OVERVIEW_CACHE_KEY, data, settings.DASHBOARD_METRICS_TTL)
        return data

    @staticmethod
    def _build_overview() -> Dict[str, Any]:
        now = timezone.now()
        completed = Transaction.objects.filter(status=TransactionStatus.COMPLETED)
        payments = completed.filter(transaction_type=TransactionType.PAYMENT)

        return {
            'users': {
                'total': User.objects.count(),
                'by_role': _by(User.objects.all(), 'role'),
                'recent_signups': User.objects.filter(date_joined__gte=now - timedelta(days=7)).count(),
            },
            'packages': {
                'total': Package.objects.count(),
                'by_status': _by(Package.objects.all(), 'status'),
                'completed': Package.objects.filter(status=PackageStatus.DELIVERED).count(),
            },
            'trips': {
                'total': Trip.objects.count(),
                'by_status': _by(Trip.objects.all(), 'status'),
            },
            'disputes': {
                'open': Dispute.objects.filter(
                    status__in=[DisputeStatus.OPEN, DisputeStatus.IN_REVIEW]
                ).count(),
            },
            'finance': {
                'revenue': abs(_total(payments)),
                'platform_fees': _total(completed, 'platform_fee'),
                'wallet_total': _total(Wallet.objects.all(), 'balance'),
                'locked_wallets': Wallet.objects.filter(is_locked=True).count(),
            },
            'generated_at': now.isoformat(),
        }

    @staticmethod
    def sidebar() -> Dict[str, int]:
        """Badge counters for the dashboard navigation."""
        return {
            'users': User.objects.count(),
            'packages': Package.objects.count(),
            'trips': Trip.objects.count(),
            'unverified_users': User.objects.filter(is_verified=False).count(),
            'messages': Message.objects.count(),
            'open_disputes': Dispute.objects.filter(status=DisputeStatus.OPEN).count(),
            'pending_documents': VerificationDocument.objects.filter(
                status=VerificationStatus.PENDING
            ).count(),
        }

    # ==========================================
    # Section metrics
    # ==========================================

    @staticmethod
    def users() -> Dict[str, Any]:
        users = User.objects.all()
        total = users.count()
        verified = users.filter(is_verified=True).count()
        return {
            'total': total,
            'active': users.filter(is_active=True).count(),
            'inactive': users.filter(is_active=False).count(),
            'verified': verified,
            'unverified': total - verified,
            'senders': users.filter(role=UserRole.SENDER).count(),
            'travelers': users.filter(role=UserRole.TRAVELER).count(),
            'admins': users.filter(role=UserRole.ADMIN).count(),
            'by_subscription': _by(users, 'subscription_tier'),
            'new_this_month': users.filter(date_joined__gte=timezone.now() - timedelta(days=30)).count(),
            'verification_rate': round(verified / total * 100, 1) if total > 0 else 0,
        }

    @staticmethod
    def packages() -> Dict[str, Any]:
        packages = Package.objects.all()
        total = packages.count()
        delivered = packages.filter(status=PackageStatus.DELIVERED).count()
        return {
            'total': total,
            'by_status': _by(packages, 'status'),
            'by_priority': _by(packages, 'priority'),
            'delivered': delivered,
            'delivery_rate': round(delivered / total * 100, 1) if total > 0 else 0,
            'average_weight_kg': round(packages.aggregate(avg=Avg('weight_kg'))['avg'] or 0, 2),
            'average_offered_price': packages.aggregate(avg=Avg('offered_price'))['avg'] or Decimal('0.00'),
        }

    @staticmethod
    def trips() -> Dict[str, Any]:
        trips = Trip.objects.all()
        return {
            'total': trips.count(),
            'by_status': _by(trips, 'status'),
            'by_transport_mode': _by(trips, 'transport_mode'),
            'open_capacity_kg': round(
                trips.filter(status__in=[TripStatus.POSTED, TripStatus.ACTIVE])
                .aggregate(total=Sum('available_space_kg'))['total'] or 0, 2
            ),
        }

    @staticmethod
    def disputes() -> Dict[str, Any]:
        disputes = Dispute.objects.all()
        return {
            'total': disputes.count(),
            'open': disputes.filter(status=DisputeStatus.OPEN).count(),
            'in_review': disputes.filter(status=DisputeStatus.IN_REVIEW).count(),
            'resolved': disputes.filter(status=DisputeStatus.RESOLVED).count(),
            'closed': disputes.filter(status=DisputeStatus.CLOSED).count(),
            'by_type': _by(disputes, 'dispute_type'),
            'total_refunded': _total(disputes, 'refund_amount'),
        }

    @staticmethod
    def wallets() -> Dict[str, Any]:
        wallets = Wallet.objects.all()
        return {
            'total': wallets.count(),
            'locked': wallets.filter(is_locked=True).count(),
            'total_balance': _total(wallets, 'balance'),
            'total_pending': _total(wallets, 'pending_balance'),
            'average_balance': wallets.aggregate(avg=Avg('balance'))['avg'] or Decimal('0.00'),
            'bands': {band: wallets.filter(q).count() for band, q in BALANCE_BANDS.items()},
        }

    @staticmethod
    def transactions() -> Dict[str, Any]:
        transactions = Transaction.objects.all()
        completed = transactions.filter(status=TransactionStatus.COMPLETED)
        return {
            'total': transactions.count(),
            'by_type': _by(transactions, 'transaction_type'),
            'by_status': _by(transactions, 'status'),
            'volume': _total(completed.filter(amount__gt=0)),
            'refunded': _total(transactions.filter(transaction_type=TransactionType.REFUND)),
            'platform_fees': _total(completed, 'platform_fee'),
        }

    @staticmethod
    def payment_methods() -> Dict[str, Any]:
        methods = PaymentMethod.objects.all()
        return {
            'total': methods.count(),
            'active': methods.filter(is_active=True).count(),
            'default': methods.filter(is_default=True).count(),
            'by_type': _by(methods, 'method_type'),
        }

    @staticmethod
    def sessions() -> Dict[str, Any]:
        now = timezone.now()
        tokens = OutstandingToken.objects.all()
        live = tokens.filter(blacklistedtoken__isnull=True)
        return {
            'total': tokens.count(),
            'active': live.filter(expires_at__gt=now).count(),
            'expired': live.filter(expires_at__lte=now).count(),
            'revoked': tokens.filter(blacklistedtoken__isnull=False).count(),
            'today': tokens.filter(created_at__gte=now.replace(hour=0, minute=0, second=0, microsecond=0)).count(),
            'this_hour': tokens.filter(created_at__gte=now.replace(minute=0, second=0, microsecond=0)).count(),
            'unique_users': live.filter(expires_at__gt=now).values('user').distinct().count(),
        }

    @staticmethod
    def messages() -> Dict[str, Any]:
        messages = Message.objects.all()
        return {
            'total': messages.count(),
            'hidden': messages.filter(is_deleted=True).count(),
            'by_type': _by(messages, 'message_type'),
            'by_moderation_action': _by(messages.exclude(moderation_action=''), 'moderation_action'),
            'last_24h': messages.filter(created_at__gte=timezone.now() - timedelta(hours=24)).count(),
        }

    @staticmethod
    def chats() -> Dict[str, Any]:
        chats = Chat.objects.all()
        return {
            'total': chats.count(),
            'active': chats.filter(is_active=True).count(),
            'by_type': _by(chats, 'chat_type'),
            'without_messages': chats.filter(messages__isnull=True).count(),
        }

    @staticmethod
    def notifications() -> Dict[str, Any]:
        notifications = Notification.objects.filter(is_deleted=False)
        return {
            'total': notifications.count(),
            'unread': notifications.filter(is_read=False).count(),
            'by_type': _by(notifications, 'notification_type'),
        }

    @staticmethod
    def reviews() -> Dict[str, Any]:
        reviews = Review.objects.all()
        return {
            'total': reviews.count(),
            'average_rating': round(reviews.aggregate(avg=Avg('rating'))['avg'] or 0, 2),
            'by_rating': _by(reviews, 'rating'),
            'by_category': _by(reviews, 'category'),
        }

    @staticmethod
    def safety() -> Dict[str, Any]:
        confirmations = SafetyConfirmation.objects.all()
        return {
            'total': confirmations.count(),
            'verified': confirmations.filter(is_verified_by_admin=True).count(),
            'pending': confirmations.filter(is_verified_by_admin=False).count(),
            'by_type': _by(confirmations, 'confirmation_type'),
        }

    @staticmethod
    def tracking() -> Dict[str, Any]:
        events = TrackingEvent.objects.all()
        return {
            'total': events.count(),
            'by_event': _by(events, 'event'),
        }

    @staticmethod
    def verification() -> Dict[str, Any]:
        documents = VerificationDocument.objects.all()
        return {
            'total': documents.count(),
            'by_status': _by(documents, 'status'),
            'by_type': _by(documents, 'document_type'),
        }

    @staticmethod
    def system_config() -> Dict[str, Any]:
        keys = set(SystemConfig.objects.values_list('key', flat=True))
        return {
            'total': len(keys),
            'missing_defaults': sorted(set(SystemConfig.DEFAULTS) - keys),
        }

    @staticmethod
    def audit_logs() -> Dict[str, Any]:
        logs = AdminActivityLog.objects.all()
        return {
            'total': logs.count(),
            'last_24h': logs.filter(created_at__gte=timezone.now() - timedelta(hours=24)).count(),
            'by_target': _by(logs, 'target_type'),
        }


class AdminActionService:
    """
    Status overrides made from the dashboard.

    Both keep the trip link and available space consistent with the
    package status.
    """

    @staticmethod
    @transaction.atomic
    def change_package_status(package, new_status: str) -> Package:
        from logistics.services.assignment import AssignmentService

        package = Package.objects.select_for_update().get(pk=package.pk)
        if new_status not in PackageStatus.values:
            raise ValueError(f"Unknown package status: {new_status}")
        if new_status == package.status:
            return package

        if new_status in ASSIGNED_PACKAGE_STATUSES:
            if package.trip_id is None:
                raise ValueError("Package is not assigned to a trip")
        elif package.trip_id is not None:
            AssignmentService.release_from_trip(package, new_status)
            logger.info(f"[DASHBOARD] Package {str(package.id)[:8]} released → {new_status}")
            return package

        package.status = new_status
        fields = ['status', 'updated_at']
        if new_status == PackageStatus.IN_TRANSIT and package.picked_up_at is None:
            package.picked_up_at = timezone.now()
            fields.append('picked_up_at')
        elif new_status == PackageStatus.DELIVERED and package.delivered_at is None:
            package.delivered_at = timezone.now()
            fields.append('delivered_at')
        package.save(update_fields=fields)

        logger.info(f"[DASHBOARD] Package {str(package.id)[:8]} → {new_status}")
        return package

    @staticmethod
    def cancel_package(package) -> Package:
        if package.status in (PackageStatus.DELIVERED, PackageStatus.CANCELLED):
            raise ValueError(f"Cannot cancel a {package.status.lower()} package")
        return AdminActionService.change_package_status(package, PackageStatus.CANCELLED)

    @staticmethod
    @transaction.atomic
    def change_trip_status(trip, new_status: str) -> Trip:
        """Cancelling a trip sends its not yet picked up packages back to the marketplace."""
        from logistics.services.assignment import AssignmentService

        if new_status not in TripStatus.values:
            raise ValueError(f"Unknown trip status: {new_status}")

        # Package rows before the trip row, the order assignments lock in
        packages = []
        if new_status == TripStatus.CANCELLED:
            packages = list(
                Package.objects.select_for_update(of=('self',)).select_related('trip')
                .filter(trip_id=trip.pk).order_by('pk')
            )
        trip = Trip.objects.select_for_update().get(pk=trip.pk)

        if new_status == TripStatus.CANCELLED:
            if any(package.status != PackageStatus.MATCHED for package in packages):
                raise ValueError("Trip carries packages already picked up")
            for package in packages:
                AssignmentService.release_from_trip(package, PackageStatus.POSTED)
            trip.refresh_from_db(fields=['available_space_kg'])

        trip.status = new_status
        trip.save(update_fields=['status', 'updated_at'])
        logger.info(f"[DASHBOARD] Trip {str(trip.id)[:8]} → {new_status}")
        return trip

    @staticmethod
    def verify_safety_confirmation(confirmation, admin_user) -> SafetyConfirmation:
        if confirmation.is_verified_by_admin:
            raise ValueError("Confirmation already verified")
        confirmation.is_verified_by_admin = True
        confirmation.verified_by = admin_user
        confirmation.verified_at = timezone.now()
        confirmation.save(update_fields=['is_verified_by_admin', 'verified_by', 'verified_at'])
        return confirmation

    @staticmethod
    def revoke_session(outstanding: OutstandingToken) -> BlacklistedToken:
        """Blacklist the refresh token so the session cannot be renewed."""
        if BlacklistedToken.objects.filter(token=outstanding).exists():
            raise ValueError("Session is already revoked")
        if outstanding.expires_at <= timezone.now():
            raise ValueError("Session has already expired")
        blacklisted = BlacklistedToken.objects.create(token=outstanding)
        logger.info(f"[DASHBOARD] Session {outstanding.jti} of {outstanding.user_id} revoked")
        return blacklisted
