"""
Core App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    LoginView, RegisterView, LogoutView, MeView, ChangePasswordView,
    ForgotPasswordView, ResetPasswordView, EmailVerificationView,
    SendPhoneCodeView, VerifyPhoneCodeView, verification_progress,
    VerificationDocumentViewSet, UserViewSet, subscription_status,
    check_post_eligibility, UpdateSubscriptionsCronView,
)

router = DefaultRouter()
router.register(r'users', UserViewSet, basename='user')
router.register(r'verification/documents', VerificationDocumentViewSet, basename='verification-document')

urlpatterns = [
    # JWT Authentication
    path('auth/login/', LoginView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/logout/', LogoutView.as_view(), name='logout'),
    path('auth/me/', MeView.as_view(), name='me'),
    path('auth/change-password/', ChangePasswordView.as_view(), name='change-password'),
    path('auth/forgot-password/', ForgotPasswordView.as_view(), name='forgot-password'),
    path('auth/reset-password/', ResetPasswordView.as_view(), name='reset-password'),

    # Verification
    path('auth/verify-email/', EmailVerificationView.as_view(), name='verify-email'),
    path('auth/send-phone-code/', SendPhoneCodeView.as_view(), name='send-phone-code'),
    path('auth/verify-phone/', VerifyPhoneCodeView.as_view(), name='verify-phone'),
    path('auth/verification-progress/', verification_progress, name='verification-progress'),

    # Subscription
    path('subscription/status/', subscription_status, name='subscription-status'),
    path('check-post-eligibility/', check_post_eligibility, name='check-post-eligibility'),
    path('cron/update-subscriptions/', UpdateSubscriptionsCronView.as_view(), name='cron-update-subscriptions'),

    # Router URLs
    path('', include(router.urls)),
]
