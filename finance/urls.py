"""
Finance App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import TransactionViewSet, WalletViewSet

router = DefaultRouter()
router.register(r'transactions', TransactionViewSet, basename='transaction')

urlpatterns = [
    path('wallet/', WalletViewSet.as_view({'get': 'summary'}), name='wallet-summary'),
    path('', include(router.urls)),
]
