"""
AMENADE Finance Tests
=====================

Tests for:
1. WalletService (credit, debit, atomic transactions)
2. Manual adjustments, locks and refunds
3. Transaction audit trail
4. Wallet API
"""

from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from core.models import SystemConfig, UserRole
from finance.models import Wallet, Transaction, TransactionType, TransactionStatus, WalletService
from logistics.tests import make_user


class TestWalletService(TestCase):
    """Tests for WalletService credit/debit operations."""

    def setUp(self):
        self.user = make_user('wallet@example.com', UserRole.TRAVELER)
        self.wallet = WalletService.get_wallet(self.user)

    def _balance(self):
        self.wallet.refresh_from_db()
        return self.wallet.balance

    # ==========================================
    # Credit / Debit
    # ==========================================

    def test_wallet_created_with_user(self):
        self.assertTrue(Wallet.objects.filter(user=self.user).exists())
        self.assertEqual(self.wallet.balance, Decimal('0.00'))

    def test_credit_records_transaction(self):
        tx = WalletService.credit(self.user, Decimal('30.00'), TransactionType.DEPOSIT, description='Top up')
        self.assertEqual(self._balance(), Decimal('30.00'))
        self.assertEqual(tx.balance_before, Decimal('0.00'))
        self.assertEqual(tx.balance_after, Decimal('30.00'))
        self.assertEqual(tx.status, TransactionStatus.COMPLETED)
        self.assertEqual(tx.wallet, self.wallet)

    def test_non_positive_amounts_rejected(self):
        for amount in (Decimal('0.00'), Decimal('-5.00')):
            with self.assertRaises(ValueError):
                WalletService.credit(self.user, amount, TransactionType.DEPOSIT)
            with self.assertRaises(ValueError):
                WalletService.debit(self.user, amount, TransactionType.PAYMENT)

    def test_debit_is_signed_and_checks_funds(self):
        WalletService.credit(self.user, Decimal('10.00'), TransactionType.DEPOSIT)
        tx = WalletService.debit(self.user, Decimal('4.00'), TransactionType.PAYMENT)
        self.assertEqual(tx.amount, Decimal('-4.00'))
        self.assertEqual(self._balance(), Decimal('6.00'))

        with self.assertRaises(ValueError):
            WalletService.debit(self.user, Decimal('7.00'), TransactionType.PAYMENT)
        WalletService.debit(self.user, Decimal('7.00'), TransactionType.PAYMENT, allow_negative=True)
        self.assertEqual(self._balance(), Decimal('-1.00'))

    def test_locked_wallet_refuses_mutations(self):
        WalletService.lock(self.wallet, 'Suspicious activity')
        with self.assertRaises(ValueError):
            WalletService.credit(self.user, Decimal('5.00'), TransactionType.DEPOSIT)
        with self.assertRaises(ValueError):
            WalletService.adjust_balance(self.wallet, '5.00', 'add', 'Bonus')
        WalletService.credit(self.user, Decimal('5.00'), TransactionType.REFUND)
        self.assertEqual(self._balance(), Decimal('5.00'))

    # ==========================================
    # Admin operations
    # ==========================================

    def test_adjust_balance(self):
        tx = WalletService.adjust_balance(self.wallet, '20', 'add', 'Goodwill')
        self.assertEqual(tx.transaction_type, TransactionType.DEPOSIT)
        self.assertEqual(tx.description, 'Manual balance adjustment: Goodwill')

        tx = WalletService.adjust_balance(self.wallet, '5', 'subtract', 'Correction')
        self.assertEqual(tx.transaction_type, TransactionType.WITHDRAWAL)
        self.assertEqual(self._balance(), Decimal('15.00'))

    def test_adjust_balance_rules(self):
        with self.assertRaises(ValueError):
            WalletService.adjust_balance(self.wallet, '5', 'multiply', 'Nope')
        with self.assertRaises(ValueError):
            WalletService.adjust_balance(self.wallet, '0', 'add', 'Nope')
        with self.assertRaises(ValueError):
            WalletService.adjust_balance(self.wallet, '5', 'add', '  ')
        with self.assertRaises(ValueError):
            WalletService.adjust_balance(self.wallet, '5', 'subtract', 'Overdraw')
        self.assertEqual(Transaction.objects.count(), 0)

    def test_lock_and_unlock(self):
        with self.assertRaises(ValueError):
            WalletService.lock(self.wallet, '')
        WalletService.lock(self.wallet, 'Chargeback')
        self.assertTrue(self.wallet.is_locked)
        with self.assertRaises(ValueError):
            WalletService.lock(self.wallet, 'Again')

        WalletService.unlock(self.wallet)
        self.assertFalse(self.wallet.is_locked)
        self.assertEqual(self.wallet.locked_reason, '')
        with self.assertRaises(ValueError):
            WalletService.unlock(self.wallet)

    def test_partial_and_full_refund(self):
        WalletService.credit(self.user, Decimal('50.00'), TransactionType.DEPOSIT)
        payment = WalletService.debit(self.user, Decimal('20.00'), TransactionType.PAYMENT)

        refund = WalletService.refund_transaction(payment, '5.00', 'Late delivery')
        payment.refresh_from_db()
        self.assertEqual(refund.amount, Decimal('5.00'))
        self.assertEqual(refund.original_transaction, payment)
        self.assertEqual(payment.status, TransactionStatus.COMPLETED)

        with self.assertRaises(ValueError):
            WalletService.refund_transaction(payment, '16.00')

        rest = WalletService.refund_transaction(payment)
        payment.refresh_from_db()
        self.assertEqual(rest.amount, Decimal('15.00'))
        self.assertEqual(payment.status, TransactionStatus.REFUNDED)
        self.assertEqual(self._balance(), Decimal('50.00'))

        with self.assertRaises(ValueError):
            WalletService.refund_transaction(payment)

    def test_refunds_and_credits_are_not_refundable(self):
        deposit = WalletService.credit(self.user, Decimal('100.00'), TransactionType.DEPOSIT)
        payment = WalletService.debit(self.user, Decimal('100.00'), TransactionType.PAYMENT)
        refund = WalletService.refund_transaction(payment)

        with self.assertRaises(ValueError):
            WalletService.refund_transaction(refund)
        with self.assertRaises(ValueError):
            WalletService.refund_transaction(deposit)
        self.assertEqual(self._balance(), Decimal('100.00'))
        self.assertEqual(Transaction.objects.filter(transaction_type=TransactionType.REFUND).count(), 1)

    # ==========================================
    # Platform fee
    # ==========================================

    def test_payment_records_platform_fee(self):
        WalletService.credit(self.user, Decimal('50.00'), TransactionType.DEPOSIT)
        with self.settings(PLATFORM_FEE_PERCENT=10):
            tx = WalletService.debit(self.user, Decimal('20.00'), TransactionType.PAYMENT)
        self.assertEqual(tx.platform_fee, Decimal('2.00'))
        self.assertEqual(tx.net_amount, Decimal('-18.00'))
        self.assertEqual(self._balance(), Decimal('30.00'))

        withdrawal = WalletService.debit(self.user, Decimal('5.00'), TransactionType.WITHDRAWAL)
        self.assertEqual(withdrawal.platform_fee, Decimal('0.00'))
        self.assertEqual(withdrawal.net_amount, Decimal('-5.00'))

    def test_platform_fee_follows_system_config(self):
        SystemConfig.objects.create(key='platform_fee_percent', value='15')
        self.assertEqual(WalletService.platform_fee(Decimal('40.00')), Decimal('6.00'))

        SystemConfig.objects.filter(key='platform_fee_percent').update(value='n/a')
        with self.settings(PLATFORM_FEE_PERCENT=5):
            self.assertEqual(WalletService.platform_fee(Decimal('40.00')), Decimal('2.00'))


class TestWalletAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('wallet@example.com')
        self.client.force_authenticate(self.user)
        WalletService.credit(self.user, Decimal('40.00'), TransactionType.DEPOSIT)
        WalletService.debit(self.user, Decimal('15.00'), TransactionType.PAYMENT)

    def test_summary(self):
        response = self.client.get('/api/wallet/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.data['wallet']['balance']), Decimal('25.00'))
        self.assertEqual(response.data['total_transactions'], 2)
        self.assertEqual(response.data['total_debits'], Decimal('15.00'))

    def test_history_is_private(self):
        other = make_user('other@example.com')
        WalletService.credit(other, Decimal('99.00'), TransactionType.DEPOSIT)

        response = self.client.get('/api/transactions/')
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/transactions/', {'type': 'payment'})
        self.assertEqual(len(response.data['results']), 1)

        foreign = Transaction.objects.get(user=other)
        self.assertEqual(self.client.get(f'/api/transactions/{foreign.id}/').status_code, 404)
