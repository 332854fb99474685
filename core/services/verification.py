"""
CORE App - Verification Service for AMENADE

Five independent proofs make a user fully verified:
phone (SMS code), email (signed link), ID, face and address (admin-reviewed
documents). is_verified is recomputed every time one of them changes.
"""

import logging
import secrets
from datetime import timedelta
from django.conf import settings
from django.core import signing
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone
from django.contrib.auth.tokens import default_token_generator
from django.utils.http import urlsafe_base64_encode, urlsafe_base64_decode
from django.utils.encoding import force_bytes, force_str

from core.models import (
    User, PhoneVerification, VerificationDocument, VerificationStatus,
    DOCUMENT_FLAG_MAP,
)
from core.services.sms_service import NaloSMSService

logger = logging.getLogger(__name__)


EMAIL_TOKEN_SALT = 'amenade.email-verification'
EMAIL_TOKEN_MAX_AGE = 60 * 60 * 24  # 24h
MAX_PHONE_CODE_ATTEMPTS = 5


class VerificationService:

    # ============================================
    # PHONE
    # ============================================

    @staticmethod
    def generate_code() -> str:
        return f"{secrets.randbelow(900000) + 100000}"

    @staticmethod
    def send_phone_code(user, phone_number: str) -> PhoneVerification:
        """
        Store a fresh 6-digit code and text it to the user.

        Raises:
            ValueError: phone does not belong to the user / already verified
            SMSError: gateway failure or rate limit
        """
        cleaned = NaloSMSService.clean_phone(phone_number)
        if not cleaned or cleaned != NaloSMSService.clean_phone(user.phone_number):
            raise ValueError('Phone number not found or does not belong to your account')
        if user.is_phone_verified:
            raise ValueError('Phone number is already verified')

        NaloSMSService.check_rate_limit(cleaned)

        ttl = getattr(settings, 'PHONE_CODE_TTL_MINUTES', 15)
        code = VerificationService.generate_code()
        verification, _ = PhoneVerification.objects.update_or_create(
            user=user,
            defaults={
                'phone_number': cleaned,
                'code': code,
                'expires_at': timezone.now() + timedelta(minutes=ttl),
                'attempts': 0,
            }
        )

        NaloSMSService.send_sms(
            cleaned,
            f"Your Amenade verification code is: {code}. This code will expire in "
            f"{ttl} minutes. Do not share this code with anyone."
        )
        logger.info(f"[VERIFY] Phone code sent to user {user.pk}")
        return verification

    @staticmethod
    @transaction.atomic
    def verify_phone_code(user, code: str) -> bool:
        """
        Check a code. A wrong code counts an attempt; the code is consumed on success.

        Raises:
            ValueError: no pending code, expired, or too many attempts
        """
        try:
            verification = PhoneVerification.objects.select_for_update().get(user=user)
        except PhoneVerification.DoesNotExist:
            raise ValueError('No verification code found. Please request a new one.')

        if verification.expires_at < timezone.now():
            verification.delete()
            raise ValueError('Verification code has expired. Please request a new one.')
        if verification.attempts >= MAX_PHONE_CODE_ATTEMPTS:
            raise ValueError('Too many failed attempts. Please request a new code.')

        if not secrets.compare_digest(verification.code, (code or '').strip()):
            verification.attempts += 1
            verification.save(update_fields=['attempts', 'updated_at'])
            return False

        verification.delete()
        VerificationService.set_flag(user, 'is_phone_verified', True)
        logger.info(f"[VERIFY] Phone verified for user {user.pk}")
        return True

    @staticmethod
    def cleanup_expired_codes() -> int:
        deleted, _ = PhoneVerification.objects.filter(expires_at__lt=timezone.now()).delete()
        return deleted

    # ============================================
    # EMAIL
    # ============================================

    @staticmethod
    def make_email_token(user) -> str:
        return signing.dumps({'uid': str(user.pk), 'email': user.email}, salt=EMAIL_TOKEN_SALT)

    @staticmethod
    def send_verification_email(user):
        token = VerificationService.make_email_token(user)
        link = f"{settings.FRONTEND_URL}/verify-email?token={token}"
        send_mail(
            subject='Verify your Amenade email address',
            message=f"Hello {user.first_name or ''},\n\nConfirm your email address: {link}\n",
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
        logger.info(f"[VERIFY] Verification email sent to user {user.pk}")

    @staticmethod
    def confirm_email(token: str) -> User:
        try:
            data = signing.loads(token, salt=EMAIL_TOKEN_SALT, max_age=EMAIL_TOKEN_MAX_AGE)
        except signing.SignatureExpired:
            raise ValueError('Verification link has expired')
        except signing.BadSignature:
            raise ValueError('Invalid verification link')

        user = User.objects.filter(pk=data['uid'], email=data['email']).first()
        if user is None:
            raise ValueError('Invalid verification link')
        if not user.is_email_verified:
            VerificationService.set_flag(user, 'is_email_verified', True)
        return user

    # ============================================
    # PASSWORD RESET
    # ============================================

    @staticmethod
    def send_password_reset(user):
        uid = urlsafe_base64_encode(force_bytes(user.pk))
        token = default_token_generator.make_token(user)
        link = f"{settings.FRONTEND_URL}/reset-password?uid={uid}&token={token}"
        send_mail(
            subject='Reset your Amenade password',
            message=f"Use this link to choose a new password: {link}\n\n"
                    "If you did not request it, ignore this email.",
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
        )
        logger.info(f"[AUTH] Password reset link sent to user {user.pk}")

    @staticmethod
    def reset_password(uid: str, token: str, new_password: str) -> User:
        try:
            user = User.objects.get(pk=force_str(urlsafe_base64_decode(uid)))
        except (User.DoesNotExist, ValueError, TypeError, OverflowError):
            raise ValueError('Invalid or expired reset link')
        if not default_token_generator.check_token(user, token):
            raise ValueError('Invalid or expired reset link')

        user.set_password(new_password)
        user.save(update_fields=['password', 'updated_at'])
        logger.info(f"[AUTH] Password reset for user {user.pk}")
        return user

    # ============================================
    # FLAGS & DOCUMENTS
    # ============================================

    @staticmethod
    def set_flag(user, flag: str, value: bool) -> User:
        if flag not in User.VERIFICATION_FLAGS:
            raise ValueError(f"Unknown verification flag: {flag}")
        setattr(user, flag, value)
        fields = [flag, 'updated_at'] + user.refresh_verification()
        user.save(update_fields=fields)
        return user

    @staticmethod
    def set_fully_verified(user, value: bool) -> User:
        """Admin override: sets or clears all five flags at once."""
        for flag in User.VERIFICATION_FLAGS:
            setattr(user, flag, value)
        fields = list(User.VERIFICATION_FLAGS) + ['updated_at'] + user.refresh_verification()
        user.save(update_fields=fields)
        logger.info(f"[VERIFY] User {user.pk} fully {'verified' if value else 'unverified'} by admin")
        return user

    @staticmethod
    def progress(user) -> dict:
        return {
            'phone': user.is_phone_verified,
            'email': user.is_email_verified,
            'id': user.is_id_verified,
            'facial': user.is_facial_verified,
            'address': user.is_address_verified,
            'completed': user.verification_count,
            'total': len(User.VERIFICATION_FLAGS),
            'percentage': user.verification_percentage,
            'isVerified': user.is_verified,
            'status': user.verification_status,
        }

    @staticmethod
    def submit_document(user, document_type: str, document_url: str) -> VerificationDocument:
        """A new upload supersedes any pending document of the same type."""
        if document_type not in DOCUMENT_FLAG_MAP:
            raise ValueError(f"Unsupported document type: {document_type}")
        VerificationDocument.objects.filter(
            user=user, document_type=document_type, status=VerificationStatus.PENDING
        ).delete()
        document = VerificationDocument.objects.create(
            user=user,
            document_type=document_type,
            document_url=document_url,
        )
        logger.info(f"[VERIFY] {document_type} submitted by user {user.pk}")
        return document

    @staticmethod
    @transaction.atomic
    def approve_document(document, admin_user) -> VerificationDocument:
        document.status = VerificationStatus.VERIFIED
        document.rejection_reason = ''
        document.verified_at = timezone.now()
        document.reviewed_by = admin_user
        document.save(update_fields=['status', 'rejection_reason', 'verified_at', 'reviewed_by', 'updated_at'])

        VerificationService.set_flag(document.user, document.verification_flag, True)
        logger.info(f"[VERIFY] Document {document.pk} approved by {admin_user.pk}")
        return document

    @staticmethod
    @transaction.atomic
    def reject_document(document, admin_user, reason: str) -> VerificationDocument:
        if not reason or not reason.strip():
            raise ValueError('Rejection reason is required')

        document.status = VerificationStatus.REJECTED
        document.rejection_reason = reason.strip()
        document.verified_at = None
        document.reviewed_by = admin_user
        document.save(update_fields=['status', 'rejection_reason', 'verified_at', 'reviewed_by', 'updated_at'])

        user = document.user
        setattr(user, document.verification_flag, False)
        user.is_verified = False
        user.verification_status = VerificationStatus.PENDING
        user.save(update_fields=[
            document.verification_flag, 'is_verified', 'verification_status', 'updated_at'
        ])
        logger.info(f"[VERIFY] Document {document.pk} rejected by {admin_user.pk}: {reason}")
        return document
