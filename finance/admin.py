"""
Django Admin configuration for FINANCE app.
"""

import csv

from django.contrib import admin
from django.http import HttpResponse

from .models import Wallet, Transaction, PaymentMethod, WalletService


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ('user', 'balance', 'pending_balance', 'currency', 'is_locked', 'updated_at')
    list_filter = ('is_locked', 'currency')
    search_fields = ('user__email', 'user__first_name', 'user__last_name')
    readonly_fields = ('user', 'balance', 'pending_balance', 'locked_at', 'created_at', 'updated_at')
    actions = ['unlock_wallets']

    @admin.action(description="Unlock selected wallets")
    def unlock_wallets(self, request, queryset):
        count = 0
        for wallet in queryset.filter(is_locked=True):
            WalletService.unlock(wallet)
            count += 1
        self.message_user(request, f"{count} wallet(s) unlocked.")


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """Admin for Transaction with audit trail."""

    list_display = (
        'short_id', 'user', 'transaction_type', 'formatted_amount',
        'balance_after', 'status', 'created_at'
    )
    list_filter = ('transaction_type', 'status', 'created_at')
    search_fields = ('id', 'user__email', 'reference', 'description')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Transaction', {
            'fields': ('id', 'user', 'wallet', 'transaction_type', 'status')
        }),
        ('Amounts', {
            'fields': ('amount', 'currency', 'platform_fee', 'gateway_fee', 'net_amount',
                       'balance_before', 'balance_after')
        }),
        ('Details', {
            'fields': ('description', 'reference', 'package', 'trip', 'original_transaction')
        }),
        ('History', {
            'fields': ('processed_at', 'created_at')
        }),
    )
    actions = ['export_transactions_csv']

    @admin.display(description="ID")
    def short_id(self, obj):
        return str(obj.id)[:8]

    @admin.display(description="Amount")
    def formatted_amount(self, obj):
        sign = '+' if obj.amount >= 0 else ''
        return f"{sign}{obj.amount} {obj.currency}"

    # Transactions are written by WalletService only
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Export to CSV")
    def export_transactions_csv(self, request, queryset):
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="amenade_transactions.csv"'

        writer = csv.writer(response)
        writer.writerow([
            'ID', 'User', 'Type', 'Amount', 'Balance before', 'Balance after',
            'Status', 'Description', 'Reference', 'Date'
        ])
        for t in queryset.select_related('user'):
            writer.writerow([
                str(t.id)[:8],
                t.user.email,
                t.get_transaction_type_display(),
                f"{t.amount} {t.currency}",
                t.balance_before,
                t.balance_after,
                t.get_status_display(),
                t.description,
                t.reference,
                t.created_at.strftime('%Y-%m-%d %H:%M'),
            ])
        return response


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ('user', 'method_type', 'brand', 'last4', 'provider', 'is_default', 'is_active', 'created_at')
    list_filter = ('method_type', 'is_active', 'is_default')
    search_fields = ('user__email', 'brand', 'bank_name', 'provider', 'holder_name')
    readonly_fields = ('deactivated_at', 'created_at', 'updated_at')
