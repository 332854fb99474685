"""
Dashboard URLs, mounted under /api/dashboard/
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    OverviewView, SidebarMetricsView, UserAdminViewSet, VerificationAdminViewSet,
    PackageAdminViewSet, TripAdminViewSet, TrackingEventAdminViewSet,
    SafetyConfirmationAdminViewSet, ReviewAdminViewSet, DisputeAdminViewSet,
    MessageAdminViewSet, ChatAdminViewSet, NotificationAdminViewSet,
    WalletAdminViewSet, TransactionAdminViewSet, PaymentMethodAdminViewSet, SessionAdminViewSet,
    SystemConfigViewSet, AuditLogViewSet,
)

router = DefaultRouter()
router.register(r'users', UserAdminViewSet, basename='dashboard-user')
router.register(r'verification', VerificationAdminViewSet, basename='dashboard-verification')
router.register(r'packages', PackageAdminViewSet, basename='dashboard-package')
router.register(r'trips', TripAdminViewSet, basename='dashboard-trip')
router.register(r'tracking-events', TrackingEventAdminViewSet, basename='dashboard-tracking-event')
router.register(r'safety-confirmations', SafetyConfirmationAdminViewSet, basename='dashboard-safety')
router.register(r'reviews', ReviewAdminViewSet, basename='dashboard-review')
router.register(r'disputes', DisputeAdminViewSet, basename='dashboard-dispute')
router.register(r'messages', MessageAdminViewSet, basename='dashboard-message')
router.register(r'chats', ChatAdminViewSet, basename='dashboard-chat')
router.register(r'notifications', NotificationAdminViewSet, basename='dashboard-notification')
router.register(r'wallets', WalletAdminViewSet, basename='dashboard-wallet')
router.register(r'transactions', TransactionAdminViewSet, basename='dashboard-transaction')
router.register(r'payment-methods', PaymentMethodAdminViewSet, basename='dashboard-payment-method')
router.register(r'sessions', SessionAdminViewSet, basename='dashboard-session')
router.register(r'system-config', SystemConfigViewSet, basename='dashboard-system-config')
router.register(r'audit-logs', AuditLogViewSet, basename='dashboard-audit-log')

urlpatterns = [
    path('overview/', OverviewView.as_view(), name='dashboard-overview'),
    path('sidebar-metrics/', SidebarMetricsView.as_view(), name='dashboard-sidebar-metrics'),

    # The web client lists trips at /trips/list/
    path('trips/list/', TripAdminViewSet.as_view({'get': 'list'}), name='dashboard-trip-table'),

    path('', include(router.urls)),
]
