"""
Core App Views - Accounts, Profiles, Verification & Subscription API
"""

import logging
from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_api_key.permissions import HasAPIKey
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model
from django.db.models import Avg, Count, Q

from .serializers import (
    UserSerializer, UserCreateSerializer, EmailTokenObtainPairSerializer,
    UserProfileSerializer, ChangePasswordSerializer, ForgotPasswordSerializer,
    ResetPasswordSerializer, SendPhoneCodeSerializer, VerifyPhoneCodeSerializer,
    VerificationDocumentSerializer, DocumentUploadSerializer,
)
from .models import UserRole, UserProfile, VerificationDocument
from .services.sms_service import SMSError, SMSRateLimited
from .services.subscription import SubscriptionService
from .services.verification import VerificationService

logger = logging.getLogger(__name__)

User = get_user_model()


class IsAdminUser(permissions.BasePermission):
    """Permission for admin users only."""

    def has_permission(self, request, view):
        return request.user.is_authenticated and request.user.role == UserRole.ADMIN


def is_owner_or_admin(request, user) -> bool:
    return request.user.pk == user.pk or request.user.role == UserRole.ADMIN


# ============================================
# AUTHENTICATION
# ============================================

class LoginView(TokenObtainPairView):
    """POST email + password → access/refresh pair and the user."""

    serializer_class = EmailTokenObtainPairSerializer


class RegisterView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        try:
            VerificationService.send_verification_email(user)
        except Exception as e:
            logger.warning(f"[AUTH] Verification email failed for {user.pk}: {e}")

        refresh = RefreshToken.for_user(user)
        logger.info(f"[AUTH] Registered {user.pk} as {user.role}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(refresh.access_token),
            'refresh': str(refresh),
        }, status=status.HTTP_201_CREATED)


class LogoutView(APIView):
    """Blacklist the refresh token so it cannot mint new access tokens."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        token = request.data.get('refresh')
        if not token:
            return Response({'error': 'Refresh token is required'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            RefreshToken(token).blacklist()
        except TokenError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'message': 'Logged out successfully'})


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class ChangePasswordView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save(update_fields=['password', 'updated_at'])
        return Response({'message': 'Password updated'})


class ForgotPasswordView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = User.objects.filter(email__iexact=serializer.validated_data['email'], is_active=True).first()
        if user:
            try:
                VerificationService.send_password_reset(user)
            except Exception as e:
                logger.error(f"[AUTH] Password reset email failed for {user.pk}: {e}")

        # Same answer whether or not the account exists
        return Response({'message': 'If an account exists for this email, a reset link has been sent.'})


class ResetPasswordView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            VerificationService.reset_password(data['uid'], data['token'], data['password'])
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'message': 'Password has been reset'})


# ============================================
# VERIFICATION
# ============================================

class EmailVerificationView(APIView):
    """POST (authenticated) resends the link; GET ?token= confirms it."""

    def get_permissions(self):
        if self.request.method == 'GET':
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def get(self, request):
        token = request.query_params.get('token')
        if not token:
            return Response({'error': 'Token is required'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            user = VerificationService.confirm_email(token)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'message': 'Email verified', 'user': UserSerializer(user).data})

    def post(self, request):
        if request.user.is_email_verified:
            return Response({'error': 'Email is already verified'}, status=status.HTTP_400_BAD_REQUEST)
        VerificationService.send_verification_email(request.user)
        return Response({'message': 'Verification email sent'})


class SendPhoneCodeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = SendPhoneCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            VerificationService.send_phone_code(request.user, serializer.validated_data['phone_number'])
        except ValueError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except SMSRateLimited as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_429_TOO_MANY_REQUESTS)
        except SMSError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)
        return Response({'success': True, 'message': 'Verification code sent successfully'})


class VerifyPhoneCodeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = VerifyPhoneCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            verified = VerificationService.verify_phone_code(request.user, serializer.validated_data['code'])
        except ValueError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if not verified:
            return Response({'success': False, 'error': 'Invalid verification code'}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'success': True, 'message': 'Phone number verified'})


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def verification_progress(request):
    return Response(VerificationService.progress(request.user))


class VerificationDocumentViewSet(mixins.ListModelMixin,
                                  mixins.CreateModelMixin,
                                  viewsets.GenericViewSet):
    """The caller's own ID / facial / address documents."""

    serializer_class = VerificationDocumentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return VerificationDocument.objects.filter(user=self.request.user)

    def create(self, request, *args, **kwargs):
        serializer = DocumentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = VerificationService.submit_document(
            request.user,
            serializer.validated_data['document_type'],
            serializer.validated_data['document_url'],
        )
        return Response(VerificationDocumentSerializer(document).data, status=status.HTTP_201_CREATED)


# ============================================
# USERS
# ============================================

class UserViewSet(mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Public profile reads for any authenticated user;
    writes, stats and activity for the owner or an admin.
    """

    queryset = User.objects.filter(is_active=True)
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    @action(detail=True, methods=['get', 'put', 'patch'])
    def profile(self, request, pk=None):
        user = self.get_object()
        profile, _ = UserProfile.objects.get_or_create(user=user)

        if request.method == 'GET':
            return Response(UserProfileSerializer(profile).data)

        if not is_owner_or_admin(request, user):
            return Response({'error': 'You can only edit your own profile'}, status=status.HTTP_403_FORBIDDEN)

        serializer = UserProfileSerializer(profile, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    @action(detail=True, methods=['get'])
    def stats(self, request, pk=None):
        from logistics.models import Package, PackageStatus, Review
        from finance.models import WalletService

        user = self.get_object()
        if not is_owner_or_admin(request, user):
            return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)

        package_counts = Package.objects.filter(sender=user).aggregate(
            total=Count('id'),
            delivered=Count('id', filter=Q(status=PackageStatus.DELIVERED)),
        )
        ratings = Review.objects.filter(receiver=user).aggregate(avg=Avg('rating'), count=Count('id'))
        wallet = WalletService.get_wallet(user)

        return Response({
            'packagesSent': package_counts['total'],
            'packagesDelivered': package_counts['delivered'],
            'tripsPosted': user.trips.count(),
            'deliveriesCompleted': Package.objects.filter(
                trip__traveler=user, status=PackageStatus.DELIVERED
            ).count(),
            'averageRating': round(ratings['avg'] or 0, 2),
            'reviewCount': ratings['count'],
            'walletBalance': wallet.balance,
            'currency': wallet.currency,
            'verificationPercentage': user.verification_percentage,
        })

    @action(detail=True, methods=['get'])
    def activity(self, request, pk=None):
        """Recent packages, trips and reviews merged newest first."""
        from logistics.models import Package, Trip, Review

        user = self.get_object()
        if not is_owner_or_admin(request, user):
            return Response({'error': 'Forbidden'}, status=status.HTTP_403_FORBIDDEN)

        try:
            limit = max(1, min(int(request.query_params.get('limit', 20)), 100))
        except ValueError:
            limit = 20

        items = []
        for package in Package.objects.filter(sender=user).order_by('-updated_at')[:limit]:
            items.append({
                'type': 'package',
                'id': str(package.id),
                'title': package.title,
                'status': package.status,
                'timestamp': package.updated_at,
            })
        for trip in Trip.objects.filter(traveler=user).order_by('-updated_at')[:limit]:
            items.append({
                'type': 'trip',
                'id': str(trip.id),
                'title': trip.title,
                'status': trip.status,
                'timestamp': trip.updated_at,
            })
        for review in Review.objects.filter(Q(giver=user) | Q(receiver=user)).order_by('-created_at')[:limit]:
            items.append({
                'type': 'review_given' if review.giver_id == user.pk else 'review_received',
                'id': str(review.id),
                'title': f"{review.rating}/5",
                'status': review.category,
                'timestamp': review.created_at,
            })

        items.sort(key=lambda item: item['timestamp'], reverse=True)
        return Response({'activities': items[:limit]})


# ============================================
# SUBSCRIPTION
# ============================================

@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def subscription_status(request):
    return Response(SubscriptionService.check_status(request.user))


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def check_post_eligibility(request):
    result = SubscriptionService.can_post(request.user)
    return Response(result, status=status.HTTP_200_OK if result['canPost'] else status.HTTP_403_FORBIDDEN)


class UpdateSubscriptionsCronView(APIView):
    """Scheduler hook: same work as core.tasks.expire_subscriptions."""

    permission_classes = [HasAPIKey]
    authentication_classes = []

    def post(self, request):
        updated = SubscriptionService.expire_overdue()
        return Response({
            'success': True,
            'message': f'Updated {updated} expired subscriptions',
            'updated': updated,
        })
