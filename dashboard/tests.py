"""
AMENADE Dashboard Tests
=======================

Tests for:
1. Metrics (cached overview, sections, sidebar)
2. Admin-only access and dashboard pagination
3. User, package, trip and safety administration
4. Disputes, messages, wallets and transactions from the dashboard
5. Payment methods and login sessions
6. System settings and the audit log
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken

from core.models import AdminActivityLog, SystemConfig, UserRole, VerificationDocument, VerificationStatus
from finance.models import (
    PaymentMethod, PaymentMethodType, Transaction, TransactionStatus, TransactionType, WalletService,
)
from logistics.models import PackageStatus, SafetyConfirmation, TripStatus
from logistics.services.assignment import AssignmentService
from logistics.tests import make_user, make_package, make_trip, ALL_CONFIRMED
from messaging.models import Notification, NotificationType
from messaging.services import ChatService
from support.models import DisputeStatus, DisputeType
from support.services import SupportService

from .services import DashboardMetricsService, AdminActionService
from .tasks import refresh_overview_metrics


class DashboardTestMixin:

    def setUp(self):
        self.admin = make_user('admin@example.com', UserRole.ADMIN)
        self.sender = make_user('sender@example.com', first_name='Ama', last_name='Mensah')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.client = APIClient()
        self.client.force_authenticate(self.admin)

    def assign(self, weight=2.0, max_weight=10.0):
        trip = make_trip(self.traveler, max_weight=max_weight)
        package = make_package(self.sender, weight=weight)
        AssignmentService.create_assignment(package.id, trip.id, ALL_CONFIRMED, self.sender)
        package.refresh_from_db()
        trip.refresh_from_db()
        return package, trip

    def assertAudited(self, action, target):
        self.assertTrue(AdminActivityLog.objects.filter(
            admin=self.admin, action=action, target_id=str(target.pk)
        ).exists())


class TestDashboardMetrics(DashboardTestMixin, TestCase):

    def test_overview_is_cached_until_refresh(self):
        make_package(self.sender)
        first = DashboardMetricsService.overview()
        self.assertEqual(first['packages']['total'], 1)
        self.assertEqual(first['users']['by_role'][UserRole.SENDER], 1)

        make_package(self.sender)
        self.assertEqual(DashboardMetricsService.overview()['packages']['total'], 1)
        self.assertEqual(DashboardMetricsService.overview(refresh=True)['packages']['total'], 2)

    def test_refresh_task_updates_cache(self):
        DashboardMetricsService.overview()
        make_trip(self.traveler)
        refresh_overview_metrics()
        self.assertEqual(DashboardMetricsService.overview()['trips']['total'], 1)

    def test_wallet_bands(self):
        WalletService.credit(self.sender, Decimal('1500'), TransactionType.DEPOSIT)
        WalletService.credit(self.traveler, Decimal('50'), TransactionType.DEPOSIT)
        bands = DashboardMetricsService.wallets()['bands']
        self.assertEqual(bands, {'high': 1, 'medium': 0, 'low': 1, 'zero': 1})

    def test_sidebar(self):
        data = DashboardMetricsService.sidebar()
        self.assertEqual(data['users'], 3)
        self.assertEqual(data['unverified_users'], 3)
        self.assertEqual(data['open_disputes'], 0)

    def test_section_metrics_endpoints(self):
        for section in ('users', 'packages', 'trips', 'disputes', 'wallets', 'transactions',
                        'messages', 'chats', 'notifications', 'reviews', 'safety-confirmations',
                        'tracking-events', 'system-config', 'audit-logs', 'verification',
                        'payment-methods', 'sessions'):
            response = self.client.get(f'/api/dashboard/{section}/metrics/')
            self.assertEqual(response.status_code, 200, section)

    def test_overview_and_sidebar_endpoints(self):
        self.assertEqual(self.client.get('/api/dashboard/overview/').status_code, 200)
        response = self.client.get('/api/dashboard/sidebar-metrics/')
        self.assertEqual(response.data['users'], 3)


class TestDashboardAccess(DashboardTestMixin, TestCase):

    def test_non_admins_are_refused(self):
        self.client.force_authenticate(self.sender)
        for url in ('/api/dashboard/overview/', '/api/dashboard/users/', '/api/dashboard/wallets/'):
            self.assertEqual(self.client.get(url).status_code, 403)

        self.client.force_authenticate(None)
        self.assertEqual(self.client.get('/api/dashboard/users/').status_code, 401)

    def test_page_size_pagination(self):
        for i in range(4):
            make_user(f'user{i}@example.com')
        response = self.client.get('/api/dashboard/users/', {'page': 2, 'pageSize': 3})
        self.assertEqual(response.data['pagination'], {'page': 2, 'pageSize': 3, 'total': 7, 'pages': 3})
        self.assertEqual(len(response.data['results']), 3)


class TestUserAdministration(DashboardTestMixin, TestCase):

    def test_filters(self):
        response = self.client.get('/api/dashboard/users/', {'search': 'mensah'})
        self.assertEqual([u['email'] for u in response.data['results']], ['sender@example.com'])

        response = self.client.get('/api/dashboard/users/', {'role': 'traveler'})
        self.assertEqual(response.data['pagination']['total'], 1)

        self.traveler.is_active = False
        self.traveler.save()
        response = self.client.get('/api/dashboard/users/', {'isActive': 'false'})
        self.assertEqual(response.data['results'][0]['email'], 'traveler@example.com')

    def test_update_role_and_plan(self):
        response = self.client.patch(
            f'/api/dashboard/users/{self.sender.id}/',
            {'role': 'TRAVELER', 'subscription_tier': 'PREMIUM'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.sender.refresh_from_db()
        self.assertEqual(self.sender.role, UserRole.TRAVELER)
        self.assertEqual(self.sender.subscription_tier, 'PREMIUM')
        self.assertAudited('user.update', self.sender)

    def test_toggle_active(self):
        response = self.client.post(f'/api/dashboard/users/{self.sender.id}/toggle-active/')
        self.assertFalse(response.data['user']['is_active'])
        self.assertAudited('user.toggle_active', self.sender)

        response = self.client.post(f'/api/dashboard/users/{self.admin.id}/toggle-active/')
        self.assertEqual(response.status_code, 400)

    def test_toggle_verification_keeps_flags_consistent(self):
        self.client.post(f'/api/dashboard/users/{self.sender.id}/toggle-verification/')
        self.sender.refresh_from_db()
        self.assertTrue(self.sender.is_verified)
        self.assertTrue(self.sender.is_id_verified)
        self.assertEqual(self.sender.verification_status, VerificationStatus.VERIFIED)

        self.client.post(f'/api/dashboard/users/{self.sender.id}/toggle-verification/')
        self.sender.refresh_from_db()
        self.assertFalse(self.sender.is_verified)
        self.assertEqual(self.sender.verification_count, 0)

    def test_reset_password_sends_link(self):
        response = self.client.post(f'/api/dashboard/users/{self.sender.id}/reset-password/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('reset-password?uid=', mail.outbox[0].body)
        self.assertAudited('user.reset_password', self.sender)

    def test_send_message_creates_system_alert(self):
        response = self.client.post(
            f'/api/dashboard/users/{self.sender.id}/send-message/',
            {'subject': 'Welcome', 'message': 'Thanks for joining'},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        notification = Notification.objects.get(user=self.sender)
        self.assertEqual(notification.notification_type, NotificationType.SYSTEM_ALERT)
        self.assertEqual(notification.title, 'Message from Admin: Welcome')

        response = self.client.post(f'/api/dashboard/users/{self.sender.id}/send-message/', {}, format='json')
        self.assertEqual(response.status_code, 400)


class TestVerificationAdministration(DashboardTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.document = VerificationDocument.objects.create(
            user=self.sender, document_type='passport', document_url='https://files.example.com/p.jpg'
        )

    def test_list_filters(self):
        response = self.client.get('/api/dashboard/verification/', {'status': 'pending'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/verification/', {'type': 'facial_photo'})
        self.assertEqual(response.data['pagination']['total'], 0)

    def test_approve_sets_flag(self):
        response = self.client.post(f'/api/dashboard/verification/{self.document.id}/approve/')
        self.assertEqual(response.data['status'], VerificationStatus.VERIFIED)
        self.sender.refresh_from_db()
        self.assertTrue(self.sender.is_id_verified)
        self.assertAudited('verification.approve', self.document)

    def test_reject_requires_reason(self):
        url = f'/api/dashboard/verification/{self.document.id}/reject/'
        self.assertEqual(self.client.post(url, {'reason': ' '}, format='json').status_code, 400)

        response = self.client.post(url, {'reason': 'Blurry photo'}, format='json')
        self.assertEqual(response.data['status'], VerificationStatus.REJECTED)
        self.assertEqual(response.data['rejection_reason'], 'Blurry photo')


class TestLogisticsAdministration(DashboardTestMixin, TestCase):

    def test_package_back_to_market_releases_space(self):
        package, trip = self.assign(weight=3)
        self.assertEqual(trip.available_space_kg, 7)

        response = self.client.post(
            f'/api/dashboard/packages/{package.id}/status/', {'status': 'POSTED'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        package.refresh_from_db()
        trip.refresh_from_db()
        self.assertIsNone(package.trip)
        self.assertEqual(package.status, PackageStatus.POSTED)
        self.assertEqual(trip.available_space_kg, 10)
        self.assertAudited('package.status', package)

    def test_package_cannot_be_matched_without_trip(self):
        package = make_package(self.sender)
        response = self.client.post(
            f'/api/dashboard/packages/{package.id}/status/', {'status': 'IN_TRANSIT'}, format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_status_override_stamps_dates(self):
        package, _ = self.assign()
        AdminActionService.change_package_status(package, PackageStatus.DELIVERED)
        package.refresh_from_db()
        self.assertIsNotNone(package.delivered_at)

    def test_cancel_package(self):
        package, trip = self.assign(weight=4)
        response = self.client.post(f'/api/dashboard/packages/{package.id}/cancel/')
        self.assertEqual(response.data['status'], PackageStatus.CANCELLED)
        trip.refresh_from_db()
        self.assertEqual(trip.available_space_kg, 10)

        response = self.client.post(f'/api/dashboard/packages/{package.id}/cancel/')
        self.assertEqual(response.status_code, 400)

    def test_package_list_filters(self):
        make_package(self.sender, title='Guitar')
        make_package(self.sender, status=PackageStatus.DRAFT)
        response = self.client.get('/api/dashboard/packages/', {'search': 'guitar'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/packages/', {'status': 'draft'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_trip_table_and_detail(self):
        trip = make_trip(self.traveler)
        response = self.client.get('/api/dashboard/trips/list/')
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get(f'/api/dashboard/trips/{trip.id}/')
        self.assertEqual(response.data['id'], str(trip.id))

    def test_cancelling_trip_returns_matched_packages(self):
        package, trip = self.assign()
        response = self.client.post(
            f'/api/dashboard/trips/{trip.id}/status/', {'status': 'CANCELLED'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        package.refresh_from_db()
        trip.refresh_from_db()
        self.assertEqual(package.status, PackageStatus.POSTED)
        self.assertEqual(trip.status, TripStatus.CANCELLED)
        self.assertEqual(trip.available_space_kg, trip.max_weight_kg)

    def test_trip_with_picked_up_package_cannot_be_cancelled(self):
        package, trip = self.assign()
        AssignmentService.confirm_pickup(package.id, self.traveler)
        response = self.client.post(
            f'/api/dashboard/trips/{trip.id}/status/', {'status': 'CANCELLED'}, format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_tracking_and_safety(self):
        package, _ = self.assign()
        AssignmentService.confirm_pickup(package.id, self.traveler)
        response = self.client.get('/api/dashboard/tracking-events/', {'packageId': str(package.id)})
        self.assertEqual(response.data['results'][0]['event'], 'PICKED_UP')

        confirmation = SafetyConfirmation.objects.get(package=package)
        response = self.client.get('/api/dashboard/safety-confirmations/', {'verified': 'false'})
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.post(f'/api/dashboard/safety-confirmations/{confirmation.id}/verify/')
        self.assertTrue(response.data['is_verified_by_admin'])
        response = self.client.post(f'/api/dashboard/safety-confirmations/{confirmation.id}/verify/')
        self.assertEqual(response.status_code, 400)


class TestDisputeAdministration(DashboardTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.package, self.trip = self.assign(weight=4)
        self.dispute = SupportService.create_dispute(
            self.sender, DisputeType.DAMAGED_PACKAGE, 'Box arrived crushed', package=self.package
        )

    def test_status_aliases_and_filters(self):
        SupportService.start_review(self.dispute, self.admin)
        for alias in ('in_progress', 'investigating'):
            response = self.client.get('/api/dashboard/disputes/', {'status': alias})
            self.assertEqual(response.data['pagination']['total'], 1, alias)
        response = self.client.get('/api/dashboard/disputes/', {'status': 'open'})
        self.assertEqual(response.data['pagination']['total'], 0)

        response = self.client.get('/api/dashboard/disputes/', {'category': 'damaged_package', 'priority': 'medium'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/disputes/', {'priority': 'high'})
        self.assertEqual(response.data['pagination']['total'], 0)
        response = self.client.get('/api/dashboard/disputes/', {'search': 'Ama'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_resolve_with_refund(self):
        response = self.client.post(
            f'/api/dashboard/disputes/{self.dispute.id}/resolve/',
            {'status': 'resolved', 'resolution': 'Refund granted', 'refund_amount': '12.50'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], DisputeStatus.RESOLVED)
        self.assertEqual(WalletService.get_wallet(self.sender).balance, Decimal('12.50'))
        self.package.refresh_from_db()
        self.assertEqual(self.package.status, PackageStatus.CANCELLED)
        self.assertAudited('dispute.resolve', self.dispute)

        response = self.client.post(
            f'/api/dashboard/disputes/{self.dispute.id}/resolve/', {'status': 'closed'}, format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_dismiss_closes(self):
        response = self.client.post(
            f'/api/dashboard/disputes/{self.dispute.id}/resolve/', {'status': 'dismissed'}, format='json'
        )
        self.assertEqual(response.data['status'], DisputeStatus.CLOSED)


class TestMessagingAdministration(DashboardTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        package, trip = self.assign()
        self.chat = ChatService.find_or_create_assignment_chat(package, trip)
        with patch('messaging.services.events'):
            self.message = ChatService.send_message(self.chat, self.sender, 'Call me on 0244000000')

    def test_moderate(self):
        with patch('messaging.services.events'):
            response = self.client.post(
                f'/api/dashboard/messages/{self.message.id}/moderate/', {'action': 'flag'}, format='json'
            )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_deleted'])
        self.assertEqual(response.data['moderation_action'], 'flag')
        self.assertAudited('message.moderate', self.message)

        response = self.client.get('/api/dashboard/messages/', {'hidden': 'true'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_unknown_moderation_action(self):
        response = self.client.post(
            f'/api/dashboard/messages/{self.message.id}/moderate/', {'action': 'delete'}, format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_chats_and_notifications(self):
        response = self.client.get('/api/dashboard/chats/', {'userId': str(self.sender.id)})
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.get('/api/dashboard/notifications/', {'type': 'trip_request'})
        self.assertEqual(response.data['pagination']['total'], 1)


class TestFinanceAdministration(DashboardTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.wallet = WalletService.get_wallet(self.sender)
        WalletService.credit(self.sender, Decimal('200.00'), TransactionType.DEPOSIT)

    def test_wallet_filters(self):
        response = self.client.get('/api/dashboard/wallets/', {'balance': 'medium'})
        self.assertEqual([w['user_email'] for w in response.data['results']], ['sender@example.com'])

        WalletService.lock(self.wallet, 'Chargeback')
        response = self.client.get('/api/dashboard/wallets/', {'locked': 'locked', 'search': 'ama'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/wallets/', {'locked': 'unlocked'})
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_adjust(self):
        response = self.client.post(
            f'/api/dashboard/wallets/{self.wallet.id}/adjust/',
            {'amount': '50.00', 'type': 'subtract', 'reason': 'Duplicate deposit'},
            format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.data['wallet']['balance']), Decimal('150.00'))
        self.assertEqual(response.data['transaction']['transaction_type'], TransactionType.WITHDRAWAL)
        self.assertAudited('wallet.adjust', self.wallet)

        response = self.client.post(
            f'/api/dashboard/wallets/{self.wallet.id}/adjust/',
            {'amount': '500.00', 'type': 'subtract', 'reason': 'Too much'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)

    def test_lock_blocks_adjustments_until_unlock(self):
        url = f'/api/dashboard/wallets/{self.wallet.id}/'
        self.assertEqual(self.client.post(url + 'lock/', {'reason': ''}, format='json').status_code, 400)
        response = self.client.post(url + 'lock/', {'reason': 'Fraud review'}, format='json')
        self.assertTrue(response.data['is_locked'])

        adjust = {'amount': '5', 'type': 'add', 'reason': 'Bonus'}
        self.assertEqual(self.client.post(url + 'adjust/', adjust, format='json').status_code, 400)

        self.assertFalse(self.client.post(url + 'unlock/').data['is_locked'])
        self.assertEqual(self.client.post(url + 'adjust/', adjust, format='json').status_code, 200)
        self.assertAudited('wallet.unlock', self.wallet)

    def test_refund_transaction(self):
        payment = WalletService.debit(self.sender, Decimal('80.00'), TransactionType.PAYMENT)
        url = f'/api/dashboard/transactions/{payment.id}/refund/'

        response = self.client.post(url, {'amount': '30.00', 'reason': 'Partial'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.data['refund']['amount']), Decimal('30.00'))

        response = self.client.post(url, {}, format='json')
        self.assertEqual(response.data['transaction']['status'], TransactionStatus.REFUNDED)
        self.assertEqual(WalletService.get_wallet(self.sender).balance, Decimal('200.00'))

        self.assertEqual(self.client.post(url, {}, format='json').status_code, 400)
        self.assertEqual(Transaction.objects.filter(original_transaction=payment).count(), 2)

    def test_transaction_filters(self):
        WalletService.debit(self.sender, Decimal('10.00'), TransactionType.PAYMENT)
        response = self.client.get('/api/dashboard/transactions/', {'type': 'payment'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/transactions/', {'search': 'sender@'})
        self.assertEqual(response.data['pagination']['total'], 2)


class TestAccountAdministration(DashboardTestMixin, TestCase):

    # ==========================================
    # Payment methods
    # ==========================================

    def test_payment_method_filters(self):
        card = PaymentMethod.objects.create(
            user=self.sender, method_type=PaymentMethodType.CARD, brand='Visa', last4='4242',
            holder_name='Ama Mensah', is_default=True,
        )
        PaymentMethod.objects.create(
            user=self.traveler, method_type=PaymentMethodType.MOBILE_MONEY, provider='MTN',
            phone_number='+233201234567', is_active=False,
        )

        response = self.client.get('/api/dashboard/payment-methods/', {'type': 'credit_card'})
        self.assertEqual([m['id'] for m in response.data['results']], [str(card.id)])
        self.assertEqual(response.data['results'][0]['transaction_count'], 0)

        response = self.client.get('/api/dashboard/payment-methods/', {'status': 'inactive'})
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/dashboard/payment-methods/', {'search': 'mensah'})
        self.assertEqual(response.data['pagination']['total'], 1)

        metrics = self.client.get('/api/dashboard/payment-methods/metrics/').data
        self.assertEqual(metrics['total'], 2)
        self.assertEqual(metrics['active'], 1)
        self.assertEqual(metrics['default'], 1)
        self.assertEqual(metrics['by_type'], {'card': 1, 'mobile_money': 1})

    def test_deactivate_payment_method(self):
        card = PaymentMethod.objects.create(
            user=self.sender, method_type=PaymentMethodType.CARD, brand='Visa', last4='4242',
            is_default=True,
        )
        url = f'/api/dashboard/payment-methods/{card.id}/deactivate/'

        self.assertEqual(self.client.post(url, {'reason': ''}, format='json').status_code, 400)
        response = self.client.post(url, {'reason': 'Reported stolen'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data['is_active'])
        self.assertFalse(response.data['is_default'])
        self.assertEqual(response.data['deactivated_reason'], 'Reported stolen')
        self.assertAudited('payment_method.deactivate', card)

        self.assertEqual(self.client.post(url, {'reason': 'Again'}, format='json').status_code, 400)

    # ==========================================
    # Sessions
    # ==========================================

    def test_session_list_and_metrics(self):
        RefreshToken.for_user(self.sender)
        RefreshToken.for_user(self.traveler)
        now = timezone.now()
        OutstandingToken.objects.create(
            user=self.sender, jti='expired-session', token='x',
            created_at=now - timedelta(days=30), expires_at=now - timedelta(days=23),
        )

        response = self.client.get('/api/dashboard/sessions/', {'status': 'active'})
        self.assertEqual(response.data['pagination']['total'], 2)
        self.assertNotIn('token', response.data['results'][0])

        response = self.client.get('/api/dashboard/sessions/', {'status': 'expired'})
        self.assertEqual(response.data['results'][0]['jti'], 'expired-session')
        self.assertEqual(response.data['results'][0]['status'], 'expired')

        response = self.client.get('/api/dashboard/sessions/', {'search': 'mensah', 'dateRange': 'week'})
        self.assertEqual(response.data['pagination']['total'], 1)

        metrics = self.client.get('/api/dashboard/sessions/metrics/').data
        self.assertEqual(metrics['total'], 3)
        self.assertEqual(metrics['active'], 2)
        self.assertEqual(metrics['expired'], 1)
        self.assertEqual(metrics['unique_users'], 2)

    def test_revoked_session_cannot_refresh(self):
        refresh = RefreshToken.for_user(self.sender)
        session = OutstandingToken.objects.get(jti=refresh['jti'])
        url = f'/api/dashboard/sessions/{session.id}/revoke/'

        response = self.client.post(url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'revoked')
        self.assertAudited('session.revoke', session)
        self.assertEqual(self.client.post(url).status_code, 400)

        client = APIClient()
        response = client.post('/api/auth/refresh/', {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, 401)

    def test_delete_revokes_session(self):
        refresh = RefreshToken.for_user(self.traveler)
        session = OutstandingToken.objects.get(jti=refresh['jti'])
        response = self.client.delete(f'/api/dashboard/sessions/{session.id}/')
        self.assertEqual(response.status_code, 204)
        self.assertTrue(BlacklistedToken.objects.filter(token=session).exists())
        self.assertTrue(OutstandingToken.objects.filter(pk=session.pk).exists())


class TestPlatformAdministration(DashboardTestMixin, TestCase):

    def test_seed_is_idempotent(self):
        response = self.client.post('/api/dashboard/system-config/seed/')
        self.assertEqual(response.data['created'], len(SystemConfig.DEFAULTS))
        response = self.client.post('/api/dashboard/system-config/seed/')
        self.assertEqual(response.data['created'], 0)

        metrics = self.client.get('/api/dashboard/system-config/metrics/').data
        self.assertEqual(metrics['missing_defaults'], [])

    def test_config_crud_is_audited(self):
        response = self.client.post(
            '/api/dashboard/system-config/',
            {'key': 'welcome_banner', 'value': 'Hello', 'description': 'Home banner'},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        config = SystemConfig.objects.get(key='welcome_banner')

        self.client.patch(f'/api/dashboard/system-config/{config.id}/', {'value': 'Hi'}, format='json')
        self.assertEqual(SystemConfig.get_value('welcome_banner'), 'Hi')

        self.assertEqual(self.client.delete(f'/api/dashboard/system-config/{config.id}/').status_code, 204)
        actions = set(AdminActivityLog.objects.values_list('action', flat=True))
        self.assertEqual(actions, {'config.create', 'config.update', 'config.delete'})

    def test_audit_log_list(self):
        self.client.post(f'/api/dashboard/users/{self.sender.id}/toggle-active/')
        response = self.client.get('/api/dashboard/audit-logs/', {'targetType': 'User'})
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['admin_email'], 'admin@example.com')
