"""
Dashboard Views - Admin API

Every endpoint requires an ADMIN account. Tables page with
?page=&pageSize=; every mutation leaves an AdminActivityLog row.
"""

import logging
from datetime import timedelta
from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework_simplejwt.token_blacklist.models import OutstandingToken

from core.models import AdminActivityLog, SystemConfig, VerificationDocument
from core.pagination import DashboardPagination
from core.serializers import (
    SystemConfigSerializer, AdminActivityLogSerializer, VerificationDocumentSerializer,
)
from core.services.verification import VerificationService
from core.views import IsAdminUser
from finance.models import (
    Wallet, Transaction, WalletService, PaymentMethod, PaymentMethodService,
    PAYMENT_METHOD_TYPE_ALIASES,
)
from finance.serializers import (
    WalletSerializer, TransactionSerializer, WalletAdjustSerializer,
    WalletLockSerializer, RefundSerializer, PaymentMethodSerializer, DeactivateSerializer,
)
from logistics.models import Package, Trip, TrackingEvent, SafetyConfirmation, Review
from logistics.serializers import (
    PackageSerializer, TripSerializer, TrackingEventSerializer,
    SafetyConfirmationSerializer, ReviewSerializer,
)
from messaging.models import Chat, Message, Notification, NotificationType
from messaging.serializers import ChatSerializer, NotificationSerializer
from messaging.services import NotificationService, moderate_message
from support.models import Dispute, DISPUTE_PRIORITY, STATUS_ALIASES
from support.serializers import DisputeSerializer, DisputeResolveSerializer
from support.services import SupportService

from .serializers import (
    AdminUserSerializer, UserMessageSerializer, PackageStatusSerializer,
    TripStatusSerializer, AdminMessageSerializer, ModerationSerializer,
    RejectDocumentSerializer, SessionSerializer,
)
from .services import DashboardMetricsService, AdminActionService, BALANCE_BANDS

logger = logging.getLogger(__name__)

User = get_user_model()


def audit(request, action_name, target, **details):
    AdminActivityLog.record(request.user, action_name, target, details)
    logger.info(f"[DASHBOARD] {request.user.pk} {action_name} {target.__class__.__name__}:{target.pk}")


def bad_request(error):
    return Response({'error': str(error)}, status=status.HTTP_400_BAD_REQUEST)


def flag(value):
    """Parse a 'true'/'false' query parameter; None when absent or unknown."""
    if value is None:
        return None
    value = value.lower()
    if value in ('true', '1', 'yes'):
        return True
    if value in ('false', '0', 'no'):
        return False
    return None


class DashboardViewSet(viewsets.GenericViewSet):
    """Base for dashboard tables: admin only, dashboard paging, a metrics action."""

    permission_classes = [IsAdminUser]
    pagination_class = DashboardPagination
    metrics_section = None

    @action(detail=False, methods=['get'])
    def metrics(self, request):
        return Response(getattr(DashboardMetricsService, self.metrics_section)())


# ============================================
# OVERVIEW
# ============================================

class OverviewView(APIView):
    """Cached platform overview. ?refresh=true recomputes it."""

    permission_classes = [IsAdminUser]

    def get(self, request):
        refresh = flag(request.query_params.get('refresh')) is True
        return Response(DashboardMetricsService.overview(refresh=refresh))


class SidebarMetricsView(APIView):
    permission_classes = [IsAdminUser]

    def get(self, request):
        return Response(DashboardMetricsService.sidebar())


# ============================================
# USERS
# ============================================

class UserAdminViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       mixins.UpdateModelMixin,
                       DashboardViewSet):
    """
    Users table.

    Filters: ?search= (name, email, phone), ?role=, ?isActive=,
    ?verified=, ?verificationStatus=
    """

    serializer_class = AdminUserSerializer
    metrics_section = 'users'

    def get_queryset(self):
        qs = User.objects.select_related('wallet')
        params = self.request.query_params

        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(phone_number__icontains=search)
            )
        if params.get('role'):
            qs = qs.filter(role=params['role'].upper())
        is_active = flag(params.get('isActive'))
        if is_active is not None:
            qs = qs.filter(is_active=is_active)
        verified = flag(params.get('verified'))
        if verified is not None:
            qs = qs.filter(is_verified=verified)
        if params.get('verificationStatus'):
            qs = qs.filter(verification_status=params['verificationStatus'].upper())
        return qs

    def perform_update(self, serializer):
        user = serializer.save()
        audit(self.request, 'user.update', user, fields=sorted(serializer.validated_data))

    @action(detail=True, methods=['post'], url_path='toggle-active')
    def toggle_active(self, request, pk=None):
        user = self.get_object()
        if user.pk == request.user.pk:
            return bad_request('You cannot deactivate your own account')

        user.is_active = not user.is_active
        user.save(update_fields=['is_active', 'updated_at'])
        audit(request, 'user.toggle_active', user, is_active=user.is_active)
        return Response({
            'message': f"User {'activated' if user.is_active else 'deactivated'} successfully",
            'user': AdminUserSerializer(user).data,
        })

    @action(detail=True, methods=['post'], url_path='toggle-verification')
    def toggle_verification(self, request, pk=None):
        user = self.get_object()
        VerificationService.set_fully_verified(user, not user.is_verified)
        audit(request, 'user.toggle_verification', user, is_verified=user.is_verified)
        return Response({
            'message': f"User {'verified' if user.is_verified else 'unverified'} successfully",
            'user': AdminUserSerializer(user).data,
        })

    @action(detail=True, methods=['post'], url_path='reset-password')
    def reset_password(self, request, pk=None):
        user = self.get_object()
        try:
            VerificationService.send_password_reset(user)
        except Exception as e:
            logger.error(f"[DASHBOARD] Password reset mail to {user.pk} failed: {e}")
            return Response({'error': 'Could not send the reset email'},
                            status=status.HTTP_502_BAD_GATEWAY)
        audit(request, 'user.reset_password', user)
        return Response({'message': f'Password reset link sent to {user.email}'})

    @action(detail=True, methods=['post'], url_path='send-message')
    def send_message(self, request, pk=None):
        user = self.get_object()
        serializer = UserMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        notification = NotificationService.notify(
            user,
            NotificationType.SYSTEM_ALERT,
            f"Message from Admin: {serializer.validated_data['subject']}",
            serializer.validated_data['message'],
            metadata={'fromAdmin': str(request.user.pk)},
        )
        audit(request, 'user.send_message', user, notification=str(notification.pk))
        return Response({
            'message': f'Message sent successfully to {user.full_name or user.email}',
            'notification': NotificationSerializer(notification).data,
        }, status=status.HTTP_201_CREATED)


class VerificationAdminViewSet(mixins.ListModelMixin,
                               mixins.RetrieveModelMixin,
                               DashboardViewSet):
    """Uploaded identity documents. ?status= and ?type= filters."""

    serializer_class = VerificationDocumentSerializer
    metrics_section = 'verification'

    def get_queryset(self):
        qs = VerificationDocument.objects.select_related('user').order_by('-created_at')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'].upper())
        if params.get('type'):
            qs = qs.filter(document_type=params['type'].lower())
        return qs

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        document = self.get_object()
        VerificationService.approve_document(document, request.user)
        audit(request, 'verification.approve', document, document_type=document.document_type)
        return Response(VerificationDocumentSerializer(document).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        document = self.get_object()
        serializer = RejectDocumentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            VerificationService.reject_document(document, request.user, serializer.validated_data['reason'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'verification.reject', document, reason=document.rejection_reason)
        return Response(VerificationDocumentSerializer(document).data)


# ============================================
# LOGISTICS
# ============================================

class PackageAdminViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          DashboardViewSet):
    """Filters: ?status=, ?priority=, ?senderId=, ?search="""

    serializer_class = PackageSerializer
    metrics_section = 'packages'

    def get_queryset(self):
        qs = Package.objects.select_related('sender', 'trip', 'trip__traveler').order_by('-created_at')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'].upper())
        if params.get('priority'):
            qs = qs.filter(priority=params['priority'].upper())
        if params.get('senderId'):
            qs = qs.filter(sender_id=params['senderId'])
        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(title__icontains=search) |
                Q(description__icontains=search) |
                Q(pickup_city__icontains=search) |
                Q(delivery_city__icontains=search) |
                Q(sender__email__icontains=search)
            )
        return qs

    @action(detail=True, methods=['post', 'patch'], url_path='status')
    def change_status(self, request, pk=None):
        package = self.get_object()
        previous = package.status
        serializer = PackageStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            package = AdminActionService.change_package_status(package, serializer.validated_data['status'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'package.status', package, previous=previous, status=package.status)
        return Response(PackageSerializer(self.get_queryset().get(pk=package.pk)).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        package = self.get_object()
        previous = package.status
        try:
            package = AdminActionService.cancel_package(package)
        except ValueError as e:
            return bad_request(e)
        audit(request, 'package.cancel', package, previous=previous)
        return Response(PackageSerializer(self.get_queryset().get(pk=package.pk)).data)


class TripAdminViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       DashboardViewSet):
    """Filters: ?status=, ?transportMode=, ?travelerId=, ?search="""

    serializer_class = TripSerializer
    metrics_section = 'trips'

    def get_queryset(self):
        qs = Trip.objects.select_related('traveler').order_by('-created_at')
        params = self.request.query_params
        if params.get('status'):
            qs = qs.filter(status=params['status'].upper())
        if params.get('transportMode'):
            qs = qs.filter(transport_mode=params['transportMode'].lower())
        if params.get('travelerId'):
            qs = qs.filter(traveler_id=params['travelerId'])
        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(title__icontains=search) |
                Q(origin_city__icontains=search) |
                Q(destination_city__icontains=search) |
                Q(traveler__email__icontains=search)
            )
        return qs

    @action(detail=True, methods=['post', 'patch'], url_path='status')
    def change_status(self, request, pk=None):
        trip = self.get_object()
        previous = trip.status
        serializer = TripStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            trip = AdminActionService.change_trip_status(trip, serializer.validated_data['status'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'trip.status', trip, previous=previous, status=trip.status)
        return Response(TripSerializer(trip).data)


class TrackingEventAdminViewSet(mixins.ListModelMixin, DashboardViewSet):
    serializer_class = TrackingEventSerializer
    metrics_section = 'tracking'

    def get_queryset(self):
        qs = TrackingEvent.objects.select_related('package').order_by('-timestamp')
        params = self.request.query_params
        if params.get('packageId'):
            qs = qs.filter(package_id=params['packageId'])
        if params.get('event'):
            qs = qs.filter(event=params['event'].upper())
        return qs


class SafetyConfirmationAdminViewSet(mixins.ListModelMixin, DashboardViewSet):
    serializer_class = SafetyConfirmationSerializer
    metrics_section = 'safety'

    def get_queryset(self):
        qs = SafetyConfirmation.objects.select_related('package', 'trip', 'user').order_by('-confirmed_at')
        params = self.request.query_params
        verified = flag(params.get('verified'))
        if verified is not None:
            qs = qs.filter(is_verified_by_admin=verified)
        if params.get('type'):
            qs = qs.filter(confirmation_type=params['type'].upper())
        return qs

    @action(detail=True, methods=['post'])
    def verify(self, request, pk=None):
        confirmation = self.get_object()
        try:
            AdminActionService.verify_safety_confirmation(confirmation, request.user)
        except ValueError as e:
            return bad_request(e)
        audit(request, 'safety.verify', confirmation)
        return Response(SafetyConfirmationSerializer(confirmation).data)


class ReviewAdminViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         DashboardViewSet):
    serializer_class = ReviewSerializer
    metrics_section = 'reviews'

    def get_queryset(self):
        qs = Review.objects.select_related('giver', 'receiver').order_by('-created_at')
        params = self.request.query_params
        if params.get('rating'):
            qs = qs.filter(rating=params['rating'])
        if params.get('category'):
            qs = qs.filter(category=params['category'].lower())
        if params.get('userId'):
            qs = qs.filter(Q(giver_id=params['userId']) | Q(receiver_id=params['userId']))
        return qs


# ============================================
# DISPUTES
# ============================================

class DisputeAdminViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          DashboardViewSet):
    """
    Filters: ?status= (open, in_progress/investigating, resolved,
    dismissed/closed), ?category=, ?priority=, ?search=
    """

    serializer_class = DisputeSerializer
    metrics_section = 'disputes'

    def get_queryset(self):
        qs = Dispute.objects.select_related(
            'reporter', 'involved', 'resolved_by', 'package', 'trip', 'refund'
        )
        params = self.request.query_params

        status_filter = params.get('status', '').lower()
        if status_filter and status_filter != 'all':
            qs = qs.filter(status=STATUS_ALIASES.get(status_filter, status_filter.upper()))

        category = params.get('category', '').lower()
        if category and category != 'all':
            qs = qs.filter(dispute_type=category)

        priority = params.get('priority', '').lower()
        if priority and priority != 'all':
            types = [t for t, p in DISPUTE_PRIORITY.items() if p == priority]
            if priority == 'low':
                qs = qs.exclude(dispute_type__in=list(DISPUTE_PRIORITY))
            else:
                qs = qs.filter(dispute_type__in=types)

        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(title__icontains=search) |
                Q(description__icontains=search) |
                Q(reporter__email__icontains=search) |
                Q(reporter__first_name__icontains=search) |
                Q(reporter__last_name__icontains=search)
            )
        return qs

    @action(detail=True, methods=['post', 'patch'])
    def resolve(self, request, pk=None):
        dispute = self.get_object()
        serializer = DisputeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            dispute = SupportService.resolve_dispute(
                dispute,
                request.user,
                data['resolution'],
                outcome=data['status'].lower(),
                refund_amount=data['refund_amount'],
            )
        except ValueError as e:
            return bad_request(e)
        audit(request, 'dispute.resolve', dispute, status=dispute.status,
              refund_amount=str(dispute.refund_amount))
        return Response(DisputeSerializer(self.get_queryset().get(pk=dispute.pk)).data)


# ============================================
# MESSAGING
# ============================================

class MessageAdminViewSet(mixins.ListModelMixin, DashboardViewSet):
    """All messages, hidden ones included. ?chatId=, ?senderId=, ?hidden=, ?search="""

    serializer_class = AdminMessageSerializer
    metrics_section = 'messages'

    def get_queryset(self):
        qs = Message.objects.select_related('sender').order_by('-created_at')
        params = self.request.query_params
        if params.get('chatId'):
            qs = qs.filter(chat_id=params['chatId'])
        if params.get('senderId'):
            qs = qs.filter(sender_id=params['senderId'])
        hidden = flag(params.get('hidden'))
        if hidden is not None:
            qs = qs.filter(is_deleted=hidden)
        if params.get('search'):
            qs = qs.filter(content__icontains=params['search'])
        return qs

    @action(detail=True, methods=['post'])
    def moderate(self, request, pk=None):
        message = self.get_object()
        serializer = ModerationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            moderate_message(message, serializer.validated_data['action'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'message.moderate', message, action=message.moderation_action)
        return Response(AdminMessageSerializer(message).data)


class ChatAdminViewSet(mixins.ListModelMixin,
                       mixins.RetrieveModelMixin,
                       DashboardViewSet):
    serializer_class = ChatSerializer
    metrics_section = 'chats'

    def get_queryset(self):
        qs = Chat.objects.prefetch_related('memberships__user').select_related('package', 'trip')
        params = self.request.query_params
        if params.get('type'):
            qs = qs.filter(chat_type=params['type'].upper())
        if params.get('userId'):
            qs = qs.filter(participants__id=params['userId'])
        return qs.order_by('-last_message_at', '-created_at')


class NotificationAdminViewSet(mixins.ListModelMixin, DashboardViewSet):
    serializer_class = NotificationSerializer
    metrics_section = 'notifications'

    def get_queryset(self):
        qs = Notification.objects.filter(is_deleted=False).order_by('-created_at')
        params = self.request.query_params
        if params.get('userId'):
            qs = qs.filter(user_id=params['userId'])
        if params.get('type'):
            qs = qs.filter(notification_type=params['type'].upper())
        unread = flag(params.get('unread'))
        if unread is not None:
            qs = qs.filter(is_read=not unread)
        return qs


# ============================================
# FINANCE
# ============================================

class WalletAdminViewSet(mixins.ListModelMixin,
                         mixins.RetrieveModelMixin,
                         DashboardViewSet):
    """
    Filters: ?search= (owner name/email), ?locked=locked|unlocked,
    ?balance=high|medium|low|zero
    """

    serializer_class = WalletSerializer
    metrics_section = 'wallets'

    def get_queryset(self):
        qs = Wallet.objects.select_related('user').order_by('-updated_at')
        params = self.request.query_params

        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(user__email__icontains=search) |
                Q(user__first_name__icontains=search) |
                Q(user__last_name__icontains=search)
            )
        locked = params.get('locked', '').lower()
        if locked == 'locked':
            qs = qs.filter(is_locked=True)
        elif locked == 'unlocked':
            qs = qs.filter(is_locked=False)

        band = BALANCE_BANDS.get(params.get('balance', '').lower())
        if band is not None:
            qs = qs.filter(band)
        return qs

    @action(detail=True, methods=['post'])
    def adjust(self, request, pk=None):
        wallet = self.get_object()
        serializer = WalletAdjustSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            tx = WalletService.adjust_balance(wallet, data['amount'], data['type'], data['reason'])
        except ValueError as e:
            return bad_request(e)
        wallet.refresh_from_db()
        audit(request, 'wallet.adjust', wallet, type=data['type'], amount=str(data['amount']),
              reason=data['reason'], transaction=str(tx.pk))
        return Response({
            'wallet': WalletSerializer(wallet).data,
            'transaction': TransactionSerializer(tx).data,
        })

    @action(detail=True, methods=['post'])
    def lock(self, request, pk=None):
        wallet = self.get_object()
        serializer = WalletLockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            WalletService.lock(wallet, serializer.validated_data['reason'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'wallet.lock', wallet, reason=wallet.locked_reason)
        return Response(WalletSerializer(wallet).data)

    @action(detail=True, methods=['post'])
    def unlock(self, request, pk=None):
        wallet = self.get_object()
        try:
            WalletService.unlock(wallet)
        except ValueError as e:
            return bad_request(e)
        audit(request, 'wallet.unlock', wallet)
        return Response(WalletSerializer(wallet).data)


class TransactionAdminViewSet(mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              DashboardViewSet):
    """Filters: ?type=, ?status=, ?userId=, ?search="""

    serializer_class = TransactionSerializer
    metrics_section = 'transactions'

    def get_queryset(self):
        qs = Transaction.objects.select_related('user', 'package').order_by('-created_at')
        params = self.request.query_params
        if params.get('type'):
            qs = qs.filter(transaction_type=params['type'].upper())
        if params.get('status'):
            qs = qs.filter(status=params['status'].upper())
        if params.get('userId'):
            qs = qs.filter(user_id=params['userId'])
        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(user__email__icontains=search) |
                Q(description__icontains=search) |
                Q(reference__icontains=search)
            )
        return qs

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        original = self.get_object()
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            refund = WalletService.refund_transaction(original, data.get('amount'), data['reason'])
        except ValueError as e:
            return bad_request(e)
        original.refresh_from_db()
        audit(request, 'transaction.refund', original, amount=str(refund.amount),
              refund=str(refund.pk), reason=data['reason'])
        return Response({
            'transaction': TransactionSerializer(original).data,
            'refund': TransactionSerializer(refund).data,
        }, status=status.HTTP_201_CREATED)


class PaymentMethodAdminViewSet(mixins.ListModelMixin,
                                mixins.RetrieveModelMixin,
                                DashboardViewSet):
    """
    Filters: ?search= (owner, brand, bank, provider, holder),
    ?type=card|bank_account|mobile_money (aliases accepted),
    ?status=active|inactive|default
    """

    serializer_class = PaymentMethodSerializer
    metrics_section = 'payment_methods'

    def get_queryset(self):
        qs = (
            PaymentMethod.objects.select_related('user')
            .annotate(transaction_count=Count('transactions'))
            .order_by('-created_at')
        )
        params = self.request.query_params

        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(user__email__icontains=search) |
                Q(user__first_name__icontains=search) |
                Q(user__last_name__icontains=search) |
                Q(brand__icontains=search) |
                Q(bank_name__icontains=search) |
                Q(provider__icontains=search) |
                Q(holder_name__icontains=search)
            )
        method_type = params.get('type', '').lower()
        if method_type:
            qs = qs.filter(method_type=PAYMENT_METHOD_TYPE_ALIASES.get(method_type, method_type))

        state = params.get('status', '').lower()
        if state == 'active':
            qs = qs.filter(is_active=True)
        elif state == 'inactive':
            qs = qs.filter(is_active=False)
        elif state == 'default':
            qs = qs.filter(is_default=True)
        return qs

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        method = self.get_object()
        serializer = DeactivateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            PaymentMethodService.deactivate(method, serializer.validated_data['reason'])
        except ValueError as e:
            return bad_request(e)
        audit(request, 'payment_method.deactivate', method, reason=method.deactivated_reason)
        return Response(PaymentMethodSerializer(method).data)


# ============================================
# SESSIONS
# ============================================

def range_start(name, now):
    """Start of a ?dateRange= window, None when unknown."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if name == 'today':
        return today
    if name == 'week':
        return now - timedelta(days=7)
    if name == 'month':
        return today.replace(day=1)
    if name == 'quarter':
        return today.replace(month=(now.month - 1) // 3 * 3 + 1, day=1)
    if name == 'year':
        return today.replace(month=1, day=1)
    return None


class SessionAdminViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          DashboardViewSet):
    """
    Login sessions, one per issued refresh token.

    Filters: ?search= (user name/email), ?status=active|expired|revoked,
    ?dateRange=today|week|month|quarter|year (on issue date).
    DELETE and POST revoke/ blacklist the token instead of removing it.
    """

    serializer_class = SessionSerializer
    metrics_section = 'sessions'

    def get_queryset(self):
        qs = OutstandingToken.objects.select_related('user', 'blacklistedtoken').order_by('-created_at')
        params = self.request.query_params
        now = timezone.now()

        search = params.get('search')
        if search:
            qs = qs.filter(
                Q(user__email__icontains=search) |
                Q(user__first_name__icontains=search) |
                Q(user__last_name__icontains=search)
            )
        state = params.get('status', '').lower()
        if state == 'active':
            qs = qs.filter(blacklistedtoken__isnull=True, expires_at__gt=now)
        elif state == 'expired':
            qs = qs.filter(blacklistedtoken__isnull=True, expires_at__lte=now)
        elif state == 'revoked':
            qs = qs.filter(blacklistedtoken__isnull=False)

        start = range_start(params.get('dateRange', '').lower(), now)
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        return qs

    def _revoke(self, request):
        session = self.get_object()
        try:
            AdminActionService.revoke_session(session)
        except ValueError as e:
            return None, bad_request(e)
        audit(request, 'session.revoke', session, user=str(session.user_id), jti=session.jti)
        session = OutstandingToken.objects.select_related('user', 'blacklistedtoken').get(pk=session.pk)
        return session, None

    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        session, error = self._revoke(request)
        return error or Response(SessionSerializer(session).data)

    def destroy(self, request, *args, **kwargs):
        _, error = self._revoke(request)
        return error or Response(status=status.HTTP_204_NO_CONTENT)


# ============================================
# PLATFORM
# ============================================

class SystemConfigViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.CreateModelMixin,
                          mixins.UpdateModelMixin,
                          mixins.DestroyModelMixin,
                          DashboardViewSet):
    serializer_class = SystemConfigSerializer
    metrics_section = 'system_config'

    def get_queryset(self):
        qs = SystemConfig.objects.all()
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(Q(key__icontains=search) | Q(description__icontains=search))
        return qs

    def perform_create(self, serializer):
        config = serializer.save()
        audit(self.request, 'config.create', config, key=config.key, value=config.value)

    def perform_update(self, serializer):
        config = serializer.save()
        audit(self.request, 'config.update', config, key=config.key, value=config.value)

    def perform_destroy(self, instance):
        audit(self.request, 'config.delete', instance, key=instance.key)
        instance.delete()

    @action(detail=False, methods=['post'])
    def seed(self, request):
        created = SystemConfig.seed_defaults()
        logger.info(f"[DASHBOARD] {request.user.pk} seeded {created} settings")
        AdminActivityLog.objects.create(
            admin=request.user, action='config.seed', target_type='SystemConfig',
            target_id='*', details={'created': created},
        )
        return Response({'created': created, 'total': SystemConfig.objects.count()})


class AuditLogViewSet(mixins.ListModelMixin, DashboardViewSet):
    """?action=, ?targetType=, ?targetId=, ?adminId="""

    serializer_class = AdminActivityLogSerializer
    metrics_section = 'audit_logs'

    def get_queryset(self):
        qs = AdminActivityLog.objects.select_related('admin')
        params = self.request.query_params
        if params.get('action'):
            qs = qs.filter(action=params['action'])
        if params.get('targetType'):
            qs = qs.filter(target_type=params['targetType'])
        if params.get('targetId'):
            qs = qs.filter(target_id=params['targetId'])
        if params.get('adminId'):
            qs = qs.filter(admin_id=params['adminId'])
        return qs
