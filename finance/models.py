"""
FINANCE App - Wallet & Transaction Management for AMENADE

Handles: Wallets, Transactions, payment methods, manual adjustments, locks and refunds
"""

import uuid
import logging
from django.db import models, transaction
from django.conf import settings
from django.utils import timezone
from decimal import Decimal

logger = logging.getLogger(__name__)


class TransactionType(models.TextChoices):
    """Transaction type enumeration."""
    PAYMENT = 'PAYMENT', 'Payment'
    PAYOUT = 'PAYOUT', 'Payout'
    DEPOSIT = 'DEPOSIT', 'Deposit'
    WITHDRAWAL = 'WITHDRAWAL', 'Withdrawal'
    REFUND = 'REFUND', 'Refund'
    COMMISSION = 'COMMISSION', 'Platform commission'


class TransactionStatus(models.TextChoices):
    """Transaction status enumeration."""
    PENDING = 'PENDING', 'Pending'
    PROCESSING = 'PROCESSING', 'Processing'
    COMPLETED = 'COMPLETED', 'Completed'
    FAILED = 'FAILED', 'Failed'
    REFUNDED = 'REFUNDED', 'Refunded'


class Wallet(models.Model):
    """
    A user's stored balance.

    Created automatically with the user (core.signals). A locked wallet
    refuses every balance mutation until an admin unlocks it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='wallet',
        verbose_name="Owner"
    )
    balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name="Balance"
    )
    pending_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name="Pending balance"
    )
    currency = models.CharField(max_length=3, default='USD')
    is_locked = models.BooleanField(default=False, verbose_name="Locked")
    locked_reason = models.CharField(max_length=255, blank=True)
    locked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Wallet"
        verbose_name_plural = "Wallets"
        ordering = ['-updated_at']

    def __str__(self):
        return f"{self.user.email} | {self.balance} {self.currency}"


class Transaction(models.Model):
    """
    Financial transaction record.

    All wallet movements must create a Transaction for audit trail.
    Amount can be positive (credit) or negative (debit).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='transactions',
        verbose_name="User"
    )
    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name='transactions',
        null=True,
        blank=True
    )

    # Transaction Details
    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        verbose_name="Type"
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, verbose_name="Amount")
    currency = models.CharField(max_length=3, default='USD')
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    gateway_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    net_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    balance_before = models.DecimalField(max_digits=12, decimal_places=2, verbose_name="Balance before")
    balance_after = models.DecimalField(max_digits=12, decimal_places=2, verbose_name="Balance after")

    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.COMPLETED,
        verbose_name="Status"
    )

    # Related marketplace objects
    package = models.ForeignKey(
        'logistics.Package',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions'
    )
    trip = models.ForeignKey(
        'logistics.Trip',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions'
    )
    original_transaction = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='refunds',
        verbose_name="Refunded transaction"
    )
    payment_method = models.ForeignKey(
        'PaymentMethod',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='transactions'
    )

    # Metadata
    description = models.CharField(max_length=255, blank=True)
    reference = models.CharField(max_length=100, blank=True, verbose_name="External reference")
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Transaction"
        verbose_name_plural = "Transactions"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'created_at']),
            models.Index(fields=['transaction_type', 'status']),
        ]

    def __str__(self):
        sign = '+' if self.amount >= 0 else ''
        return f"{self.user.email} | {sign}{self.amount} {self.currency} | {self.transaction_type}"


class PaymentMethodType(models.TextChoices):
    CARD = 'card', 'Card'
    BANK_ACCOUNT = 'bank_account', 'Bank account'
    MOBILE_MONEY = 'mobile_money', 'Mobile money'


# Type names accepted by the dashboard filter
PAYMENT_METHOD_TYPE_ALIASES = {
    'credit_card': PaymentMethodType.CARD,
    'debit_card': PaymentMethodType.CARD,
    'bank_transfer': PaymentMethodType.BANK_ACCOUNT,
    'mobile_payment': PaymentMethodType.MOBILE_MONEY,
}


class PaymentMethod(models.Model):
    """
    A user's saved payout/payment instrument.

    Display metadata only: card numbers and credentials are never stored,
    just the brand, the last four digits and the holder's details.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='payment_methods',
        verbose_name="Owner"
    )
    method_type = models.CharField(
        max_length=20,
        choices=PaymentMethodType.choices,
        verbose_name="Type"
    )

    # Card
    brand = models.CharField(max_length=50, blank=True)
    last4 = models.CharField(max_length=4, blank=True)
    expiry_month = models.PositiveSmallIntegerField(null=True, blank=True)
    expiry_year = models.PositiveSmallIntegerField(null=True, blank=True)
    holder_name = models.CharField(max_length=150, blank=True)

    # Bank account / mobile money
    bank_name = models.CharField(max_length=100, blank=True)
    account_type = models.CharField(max_length=50, blank=True)
    phone_number = models.CharField(max_length=20, blank=True)
    provider = models.CharField(max_length=50, blank=True)

    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    deactivated_reason = models.CharField(max_length=255, blank=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Payment method"
        verbose_name_plural = "Payment methods"
        ordering = ['-created_at']

    def __str__(self):
        if self.brand and self.last4:
            label = f"{self.brand} •••• {self.last4}"
        else:
            label = self.bank_name or self.provider or self.get_method_type_display()
        return f"{self.user.email} | {label}"


class WalletService:
    """
    Service class for wallet operations.

    All operations use transaction.atomic() and lock the wallet row.
    """

    @staticmethod
    def get_wallet(user) -> Wallet:
        wallet, _ = Wallet.objects.get_or_create(
            user=user,
            defaults={'currency': getattr(settings, 'DEFAULT_CURRENCY', 'USD')}
        )
        return wallet

    @staticmethod
    def _locked(wallet) -> Wallet:
        return Wallet.objects.select_for_update().get(pk=wallet.pk)

    @staticmethod
    def platform_fee(amount) -> Decimal:
        """Commission on a payment, at SystemConfig platform_fee_percent or PLATFORM_FEE_PERCENT."""
        from core.models import SystemConfig

        percent = SystemConfig.get_value('platform_fee_percent', settings.PLATFORM_FEE_PERCENT)
        try:
            percent = Decimal(str(percent))
        except ArithmeticError:
            logger.warning(f"[WALLET] Invalid platform_fee_percent {percent!r}, using settings")
            percent = Decimal(settings.PLATFORM_FEE_PERCENT)
        return (abs(Decimal(str(amount))) * percent / 100).quantize(Decimal('0.01'))

    @staticmethod
    def _record(wallet, amount, balance_before, transaction_type, **extra) -> Transaction:
        fee = extra.pop('platform_fee', Decimal('0.00'))
        return Transaction.objects.create(
            user_id=wallet.user_id,
            wallet=wallet,
            transaction_type=transaction_type,
            amount=amount,
            currency=wallet.currency,
            platform_fee=fee,
            # net_amount excludes the fee and keeps the sign of amount
            net_amount=amount - fee.copy_sign(amount),
            balance_before=balance_before,
            balance_after=wallet.balance,
            status=TransactionStatus.COMPLETED,
            processed_at=timezone.now(),
            **extra
        )

    @staticmethod
    @transaction.atomic
    def credit(user, amount: Decimal, transaction_type: str,
               package=None, description: str = "") -> Transaction:
        """
        Credit a user's wallet (add money).

        Refunds are credited even to a locked wallet.

        Raises:
            ValueError: non-positive amount or locked wallet
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        wallet = WalletService._locked(WalletService.get_wallet(user))
        if wallet.is_locked and transaction_type != TransactionType.REFUND:
            raise ValueError("Wallet is locked")

        balance_before = wallet.balance
        wallet.balance += amount
        wallet.save(update_fields=['balance', 'updated_at'])

        logger.info(f"[WALLET] +{amount} {wallet.currency} to {user.pk} ({transaction_type})")
        return WalletService._record(
            wallet, amount, balance_before, transaction_type,
            package=package, description=description
        )

    @staticmethod
    @transaction.atomic
    def debit(user, amount: Decimal, transaction_type: str,
              package=None, description: str = "",
              allow_negative: bool = False) -> Transaction:
        """
        Debit a user's wallet (remove money). Stored as a negative amount.

        Raises:
            ValueError: non-positive amount, locked wallet or insufficient funds
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Debit amount must be positive")

        wallet = WalletService._locked(WalletService.get_wallet(user))
        if wallet.is_locked:
            raise ValueError("Wallet is locked")
        if not allow_negative and wallet.balance < amount:
            raise ValueError(f"Insufficient balance: {wallet.balance} {wallet.currency}")

        balance_before = wallet.balance
        wallet.balance -= amount
        wallet.save(update_fields=['balance', 'updated_at'])

        logger.info(f"[WALLET] -{amount} {wallet.currency} from {user.pk} ({transaction_type})")
        return WalletService._record(
            wallet, -amount, balance_before, transaction_type,
            package=package, description=description,
            platform_fee=(
                WalletService.platform_fee(amount)
                if transaction_type == TransactionType.PAYMENT else Decimal('0.00')
            ),
        )

    @staticmethod
    @transaction.atomic
    def adjust_balance(wallet, amount, adjustment_type: str, reason: str) -> Transaction:
        """
        Manual admin adjustment.

        adjustment_type is 'add' (DEPOSIT) or 'subtract' (WITHDRAWAL).
        """
        if adjustment_type not in ('add', 'subtract'):
            raise ValueError("Adjustment type must be 'add' or 'subtract'")
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise ValueError("Amount must be a number")
        if amount <= 0:
            raise ValueError("Amount must be greater than 0")
        if not reason or not reason.strip():
            raise ValueError("A reason is required for manual adjustments")

        wallet = WalletService._locked(wallet)
        if wallet.is_locked:
            raise ValueError("Cannot adjust a locked wallet")

        signed = amount if adjustment_type == 'add' else -amount
        if wallet.balance + signed < 0:
            raise ValueError("Adjustment would result in a negative balance")

        balance_before = wallet.balance
        wallet.balance += signed
        wallet.save(update_fields=['balance', 'updated_at'])

        logger.info(f"[WALLET] Manual {adjustment_type} {amount} on wallet {wallet.pk}: {reason}")
        return WalletService._record(
            wallet, signed, balance_before,
            TransactionType.DEPOSIT if adjustment_type == 'add' else TransactionType.WITHDRAWAL,
            description=f"Manual balance adjustment: {reason.strip()}"
        )

    @staticmethod
    def lock(wallet, reason: str) -> Wallet:
        if not reason or not reason.strip():
            raise ValueError("A reason is required to lock a wallet")
        if wallet.is_locked:
            raise ValueError("Wallet is already locked")

        wallet.is_locked = True
        wallet.locked_reason = reason.strip()
        wallet.locked_at = timezone.now()
        wallet.save(update_fields=['is_locked', 'locked_reason', 'locked_at', 'updated_at'])
        logger.info(f"[WALLET] Locked {wallet.pk}: {wallet.locked_reason}")
        return wallet

    @staticmethod
    def unlock(wallet) -> Wallet:
        if not wallet.is_locked:
            raise ValueError("Wallet is not locked")

        wallet.is_locked = False
        wallet.locked_reason = ''
        wallet.locked_at = None
        wallet.save(update_fields=['is_locked', 'locked_reason', 'locked_at', 'updated_at'])
        logger.info(f"[WALLET] Unlocked {wallet.pk}")
        return wallet

    @staticmethod
    @transaction.atomic
    def refund_transaction(original: Transaction, amount=None, reason: str = "") -> Transaction:
        """
        Refund a completed debit, fully or partially.

        The refunded amount is credited to the transaction owner's wallet.
        Refunds accumulate; once the whole amount is returned the original
        is marked REFUNDED.
        """
        original = Transaction.objects.select_for_update().get(pk=original.pk)
        if original.status != TransactionStatus.COMPLETED:
            raise ValueError("Only completed transactions can be refunded")
        if original.transaction_type == TransactionType.REFUND:
            raise ValueError("A refund cannot be refunded")
        if original.amount >= 0:
            raise ValueError("Only debits can be refunded")

        refunded = original.refunds.aggregate(total=models.Sum('amount'))['total'] or Decimal('0.00')
        remaining = -original.amount - refunded
        amount = remaining if amount in (None, '') else Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Refund amount must be positive")
        if amount > remaining:
            raise ValueError("Refund amount cannot exceed the amount left to refund")

        wallet = WalletService._locked(WalletService.get_wallet(original.user))
        balance_before = wallet.balance
        wallet.balance += amount
        wallet.save(update_fields=['balance', 'updated_at'])

        refund = WalletService._record(
            wallet, amount, balance_before, TransactionType.REFUND,
            package=original.package,
            trip=original.trip,
            original_transaction=original,
            description=f"Refund of {str(original.pk)[:8]}" + (f": {reason}" if reason else "")
        )

        if amount == remaining:
            original.status = TransactionStatus.REFUNDED
            original.save(update_fields=['status'])

        logger.info(f"[WALLET] Refunded {amount} of transaction {original.pk}")
        return refund


class PaymentMethodService:

    @staticmethod
    def deactivate(method: PaymentMethod, reason: str) -> PaymentMethod:
        """Admin deactivation. A deactivated method also stops being the default."""
        if not reason or not reason.strip():
            raise ValueError("Deactivation reason is required")
        if not method.is_active:
            raise ValueError("Payment method is already inactive")

        method.is_active = False
        method.is_default = False
        method.deactivated_reason = reason.strip()
        method.deactivated_at = timezone.now()
        method.save(update_fields=[
            'is_active', 'is_default', 'deactivated_reason', 'deactivated_at', 'updated_at'
        ])
        logger.info(f"[WALLET] Payment method {method.pk} deactivated: {method.deactivated_reason}")
        return method
