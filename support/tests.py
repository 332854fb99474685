"""
AMENADE Support Tests
=====================

Dispute creation, review and resolution with refunds.
"""

from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from core.models import UserRole
from finance.models import Transaction, TransactionType, WalletService
from logistics.models import PackageStatus
from logistics.services.assignment import AssignmentService
from logistics.tests import make_user, make_package, make_trip, ALL_CONFIRMED
from messaging.models import Notification, NotificationType
from support.models import Dispute, DisputeStatus, DisputeType, RefundStatus
from support.services import SupportService


class DisputeTestMixin:

    def setUp(self):
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.admin = make_user('admin@example.com', UserRole.ADMIN)
        self.trip = make_trip(self.traveler, max_weight=10)
        self.package = make_package(self.sender, weight=4)
        AssignmentService.create_assignment(self.package.id, self.trip.id, ALL_CONFIRMED, self.sender)
        self.package.refresh_from_db()


class TestSupportService(DisputeTestMixin, TestCase):

    def test_create_dispute_freezes_package(self):
        dispute = SupportService.create_dispute(
            self.sender, DisputeType.NON_DELIVERY, 'Never picked up', package=self.package
        )
        self.package.refresh_from_db()
        self.assertEqual(dispute.involved, self.traveler)
        self.assertEqual(dispute.trip, self.trip)
        self.assertEqual(dispute.package_status_before, PackageStatus.MATCHED)
        self.assertEqual(self.package.status, PackageStatus.DISPUTED)
        self.assertEqual(dispute.title, 'Non-Delivery')
        self.assertEqual(dispute.priority, 'high')
        self.assertTrue(Notification.objects.filter(
            user=self.traveler, notification_type=NotificationType.DISPUTE_UPDATE).exists())

    def test_outsider_cannot_open_dispute(self):
        outsider = make_user('x@example.com')
        with self.assertRaises(PermissionError):
            SupportService.create_dispute(outsider, DisputeType.OTHER, 'Hmm', package=self.package)

    def test_one_open_dispute_per_package(self):
        SupportService.create_dispute(self.sender, DisputeType.OTHER, 'First', package=self.package)
        with self.assertRaises(ValueError):
            SupportService.create_dispute(self.traveler, DisputeType.OTHER, 'Second', package=self.package)

    def test_resolve_without_refund_restores_status(self):
        dispute = SupportService.create_dispute(self.sender, DisputeType.OTHER, 'Late', package=self.package)
        SupportService.start_review(dispute, self.admin)
        self.assertEqual(dispute.status, DisputeStatus.IN_REVIEW)

        dispute = SupportService.resolve_dispute(dispute, self.admin, 'Sorted out')
        self.package.refresh_from_db()
        self.assertEqual(dispute.status, DisputeStatus.RESOLVED)
        self.assertEqual(self.package.status, PackageStatus.MATCHED)
        self.assertEqual(self.package.trip, self.trip)

    def test_resolve_with_refund_credits_reporter(self):
        dispute = SupportService.create_dispute(
            self.sender, DisputeType.DAMAGED_PACKAGE, 'Broken', package=self.package
        )
        SupportService.resolve_dispute(dispute, self.admin, 'Refunded', refund_amount=Decimal('25.00'))

        wallet = WalletService.get_wallet(self.sender)
        self.assertEqual(wallet.balance, Decimal('25.00'))
        dispute.refresh_from_db()
        self.assertEqual(dispute.refund.status, RefundStatus.COMPLETED)
        self.assertEqual(dispute.refund.transaction.transaction_type, TransactionType.REFUND)

        self.package.refresh_from_db()
        self.trip.refresh_from_db()
        self.assertEqual(self.package.status, PackageStatus.CANCELLED)
        self.assertIsNone(self.package.trip)
        self.assertEqual(self.trip.available_space_kg, 10)

    def test_refund_reaches_locked_wallet(self):
        WalletService.lock(WalletService.get_wallet(self.sender), 'Under review')
        dispute = SupportService.create_dispute(self.sender, DisputeType.OTHER, 'Lost', package=self.package)
        SupportService.resolve_dispute(dispute, self.admin, 'Refunded', refund_amount=Decimal('5.00'))
        self.assertEqual(WalletService.get_wallet(self.sender).balance, Decimal('5.00'))

    def test_closed_dispute_cannot_be_resolved_again(self):
        dispute = SupportService.create_dispute(self.sender, DisputeType.OTHER, 'Late', package=self.package)
        SupportService.resolve_dispute(dispute, self.admin, 'No grounds', outcome='dismissed')
        dispute.refresh_from_db()
        self.assertEqual(dispute.status, DisputeStatus.CLOSED)
        with self.assertRaises(ValueError):
            SupportService.resolve_dispute(dispute, self.admin, 'Again')
        self.assertEqual(Transaction.objects.count(), 0)


class TestDisputeAPI(DisputeTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_create_and_list(self):
        self.client.force_authenticate(self.traveler)
        response = self.client.post('/api/disputes/', {
            'package_id': str(self.package.id),
            'dispute_type': 'payment_issue',
            'description': 'Sender refuses to pay',
        }, format='json')
        self.assertEqual(response.status_code, 201, response.data)
        self.assertEqual(response.data['involved']['id'], str(self.sender.id))

        self.client.force_authenticate(self.sender)
        response = self.client.get('/api/disputes/')
        self.assertEqual(response.data['pagination']['total'], 1)

        self.client.force_authenticate(make_user('other@example.com'))
        response = self.client.get('/api/disputes/')
        self.assertEqual(response.data['pagination']['total'], 0)

    def test_reference_required(self):
        self.client.force_authenticate(self.sender)
        response = self.client.post('/api/disputes/', {'description': 'Something'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_start_review_is_admin_only(self):
        dispute = Dispute.objects.create(
            reporter=self.sender, involved=self.traveler, package=self.package, description='Late'
        )
        self.client.force_authenticate(self.sender)
        response = self.client.post(f'/api/disputes/{dispute.id}/start-review/')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/disputes/{dispute.id}/start-review/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], DisputeStatus.IN_REVIEW)
