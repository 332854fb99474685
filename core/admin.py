"""
Django Admin configuration for CORE app.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import (
    User, UserProfile, VerificationDocument, VerificationStatus, PhoneVerification,
    SystemConfig, AdminActivityLog,
)


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    readonly_fields = ('sender_rating', 'traveler_rating', 'total_deliveries', 'total_trips')


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Custom admin for User model with email-based auth."""

    list_display = (
        'email',
        'full_name',
        'role',
        'verification_status',
        'is_verified',
        'subscription_tier',
        'subscription_status',
        'is_active',
        'date_joined'
    )
    list_filter = ('role', 'is_verified', 'verification_status', 'subscription_tier', 'is_active', 'is_staff')
    search_fields = ('email', 'first_name', 'last_name', 'phone_number')
    ordering = ('-date_joined',)
    inlines = [UserProfileInline]

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        ('Profile', {
            'fields': ('first_name', 'last_name', 'phone_number', 'avatar', 'role')
        }),
        ('Verification', {
            'fields': (
                'is_phone_verified', 'is_email_verified', 'is_id_verified',
                'is_facial_verified', 'is_address_verified',
                'is_verified', 'verification_status',
            ),
            'description': 'is_verified is recomputed from the five flags'
        }),
        ('Subscription', {
            'fields': ('subscription_tier', 'subscription_status', 'last_payment_date'),
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',)
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'role', 'password1', 'password2'),
        }),
    )

    readonly_fields = ('date_joined', 'is_verified')

    actions = ['block_users', 'unblock_users']

    def save_model(self, request, obj, form, change):
        obj.refresh_verification()
        super().save_model(request, obj, form, change)

    @admin.action(description="Block selected users")
    def block_users(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} user(s) blocked.")

    @admin.action(description="Unblock selected users")
    def unblock_users(self, request, queryset):
        updated = queryset.update(is_active=True)
        self.message_user(request, f"{updated} user(s) unblocked.")


@admin.register(VerificationDocument)
class VerificationDocumentAdmin(admin.ModelAdmin):
    list_display = ('user', 'document_type', 'status', 'reviewed_by', 'created_at')
    list_filter = ('status', 'document_type')
    search_fields = ('user__email',)
    readonly_fields = ('reviewed_by', 'verified_at', 'created_at', 'updated_at')
    actions = ['approve_documents']

    @admin.action(description="Approve selected documents")
    def approve_documents(self, request, queryset):
        from .services.verification import VerificationService

        approved = 0
        for document in queryset.exclude(status=VerificationStatus.VERIFIED):
            VerificationService.approve_document(document, request.user)
            approved += 1
        self.message_user(request, f"{approved} document(s) approved.")


@admin.register(PhoneVerification)
class PhoneVerificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'phone_number', 'attempts', 'expires_at')
    search_fields = ('user__email', 'phone_number')
    exclude = ('code',)


@admin.register(SystemConfig)
class SystemConfigAdmin(admin.ModelAdmin):
    list_display = ('key', 'value', 'description', 'updated_at')
    search_fields = ('key', 'description')


# ===========================================
# ADMIN ACTIVITY LOG
# ===========================================

@admin.register(AdminActivityLog)
class AdminActivityLogAdmin(admin.ModelAdmin):
    """Read-only admin for audit trail."""

    list_display = ('created_at', 'admin', 'action', 'target_type', 'target_id')
    list_filter = ('action', 'target_type', 'created_at')
    search_fields = ('admin__email', 'target_type', 'target_id')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    readonly_fields = ('admin', 'action', 'target_type', 'target_id', 'details', 'created_at')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
