"""
Finance App Serializers - Wallets, Transactions & Payment Methods
"""

from rest_framework import serializers
from .models import Wallet, Transaction, PaymentMethod


class TransactionSerializer(serializers.ModelSerializer):
    """Serializer for Transaction model."""

    user_email = serializers.EmailField(source='user.email', read_only=True)
    package_title = serializers.CharField(source='package.title', read_only=True, default=None)

    class Meta:
        model = Transaction
        fields = [
            'id', 'user', 'user_email', 'wallet', 'transaction_type', 'amount', 'currency',
            'platform_fee', 'gateway_fee', 'net_amount',
            'balance_before', 'balance_after', 'status',
            'package', 'package_title', 'trip', 'original_transaction', 'payment_method',
            'description', 'reference', 'processed_at', 'created_at',
        ]
        read_only_fields = fields


class TransactionListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for transaction listings."""

    class Meta:
        model = Transaction
        fields = ['id', 'transaction_type', 'amount', 'currency', 'balance_after', 'status', 'description', 'created_at']


class WalletSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.full_name', read_only=True)

    class Meta:
        model = Wallet
        fields = [
            'id', 'user', 'user_email', 'user_name', 'balance', 'pending_balance', 'currency',
            'is_locked', 'locked_reason', 'locked_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class WalletAdjustSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    type = serializers.ChoiceField(choices=['add', 'subtract'])
    reason = serializers.CharField(allow_blank=True)


class WalletLockSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class PaymentMethodSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.full_name', read_only=True)
    transaction_count = serializers.SerializerMethodField()

    class Meta:
        model = PaymentMethod
        fields = [
            'id', 'user', 'user_email', 'user_name', 'method_type',
            'brand', 'last4', 'expiry_month', 'expiry_year', 'holder_name',
            'bank_name', 'account_type', 'phone_number', 'provider',
            'is_default', 'is_active', 'deactivated_reason', 'deactivated_at',
            'transaction_count', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_transaction_count(self, obj):
        count = getattr(obj, 'transaction_count', None)
        return count if count is not None else obj.transactions.count()


class DeactivateSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True)
