"""
Django Admin configuration for LOGISTICS app.
"""

from django.contrib import admin
from django.utils import timezone
from .models import Package, Trip, TrackingEvent, SafetyConfirmation, Review


class TrackingEventInline(admin.TabularInline):
    model = TrackingEvent
    extra = 0
    readonly_fields = ('event', 'description', 'location', 'created_by', 'timestamp')
    can_delete = False


@admin.register(Package)
class PackageAdmin(admin.ModelAdmin):
    list_display = (
        'title', 'sender', 'pickup_city', 'delivery_city', 'weight_kg',
        'offered_price', 'currency', 'status', 'created_at'
    )
    list_filter = ('status', 'priority', 'is_fragile', 'pickup_country', 'delivery_country')
    search_fields = ('title', 'description', 'sender__email', 'pickup_city', 'delivery_city')
    raw_id_fields = ('sender', 'receiver', 'trip')
    readonly_fields = ('created_at', 'updated_at', 'matched_at', 'picked_up_at', 'delivered_at')
    date_hierarchy = 'created_at'
    inlines = [TrackingEventInline]

    fieldsets = (
        (None, {
            'fields': ('title', 'description', 'category', 'sender', 'receiver', 'trip', 'status', 'priority')
        }),
        ('Size & value', {
            'fields': (
                ('length_cm', 'width_cm', 'height_cm', 'weight_kg'),
                'value', 'is_fragile', 'requires_signature',
            )
        }),
        ('Route', {
            'fields': (
                'pickup_address', 'pickup_city', 'pickup_country', 'pickup_date',
                'delivery_address', 'delivery_city', 'delivery_country', 'delivery_date',
            )
        }),
        ('Pricing', {
            'fields': ('offered_price', 'final_price', 'currency')
        }),
        ('Timeline', {
            'fields': ('created_at', 'updated_at', 'matched_at', 'picked_up_at', 'delivered_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    list_display = (
        'title', 'traveler', 'origin_city', 'destination_city', 'departure_date',
        'max_weight_kg', 'available_space_kg', 'transport_mode', 'status'
    )
    list_filter = ('status', 'transport_mode', 'flexible_dates')
    search_fields = ('title', 'traveler__email', 'origin_city', 'destination_city')
    raw_id_fields = ('traveler',)
    readonly_fields = ('available_space_kg', 'created_at', 'updated_at')
    date_hierarchy = 'departure_date'


@admin.register(SafetyConfirmation)
class SafetyConfirmationAdmin(admin.ModelAdmin):
    list_display = ('package', 'trip', 'user', 'confirmation_type', 'confirmed_at', 'is_verified_by_admin')
    list_filter = ('confirmation_type', 'is_verified_by_admin')
    readonly_fields = ('package', 'trip', 'user', 'confirmations', 'confirmed_at', 'verified_by', 'verified_at')
    actions = ['mark_verified']

    @admin.action(description="Mark selected confirmations as verified")
    def mark_verified(self, request, queryset):
        updated = queryset.filter(is_verified_by_admin=False).update(
            is_verified_by_admin=True, verified_by=request.user, verified_at=timezone.now()
        )
        self.message_user(request, f"{updated} confirmation(s) verified.")


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('giver', 'receiver', 'rating', 'category', 'package', 'created_at')
    list_filter = ('rating', 'category')
    search_fields = ('giver__email', 'receiver__email', 'comment')
    raw_id_fields = ('giver', 'receiver', 'package', 'trip')
