"""
Django Admin configuration for SUPPORT app.
"""

from django.contrib import admin
from .models import Dispute, Refund


class RefundInline(admin.StackedInline):
    model = Refund
    extra = 0
    can_delete = False
    readonly_fields = ('user', 'amount', 'transaction', 'status', 'reason', 'created_at', 'completed_at')


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ('title', 'reporter', 'involved', 'dispute_type', 'status', 'refund_amount', 'created_at')
    list_filter = ('status', 'dispute_type')
    search_fields = ('title', 'description', 'reporter__email', 'involved__email')
    raw_id_fields = ('reporter', 'involved', 'package', 'trip', 'resolved_by')
    readonly_fields = ('package_status_before', 'resolved_at', 'created_at', 'updated_at')
    inlines = [RefundInline]
