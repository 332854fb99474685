"""
AMENADE Core Tests
==================

Tests for:
1. Custom User Model (email login, verification flags)
2. Registration, login and profile endpoints
3. Phone / email verification and password reset
4. Subscription limits and post eligibility
5. Security Middleware (rate limiting, headers)
"""

from datetime import timedelta
from unittest.mock import patch

from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_api_key.models import APIKey

from core.models import (
    User, UserRole, UserProfile, VerificationStatus, SubscriptionTier,
    SubscriptionStatus, PhoneVerification, VerificationDocument, DocumentType,
    SystemConfig,
)
from core.services.subscription import SubscriptionService
from core.services.verification import VerificationService
from core.services.sms_service import NaloSMSService, SMSError, SMSRateLimited

STRONG_PASSWORD = 'Str0ng!Pass'


def make_user(email='sender@example.com', role=UserRole.SENDER, **extra):
    return User.objects.create_user(email=email, password=STRONG_PASSWORD, role=role, **extra)


class TestUserModel(TestCase):
    """Tests for the custom User model."""

    def setUp(self):
        self.user = make_user(first_name='Ama', last_name='Mensah')

    def test_email_is_normalised(self):
        user = User.objects.create_user(email='Mixed@Example.COM', password=STRONG_PASSWORD)
        self.assertEqual(user.email, 'mixed@example.com')

    def test_user_uuid_primary_key(self):
        import uuid
        self.assertIsInstance(self.user.id, uuid.UUID)

    def test_profile_and_wallet_created(self):
        """post_save signal should create the profile and the wallet."""
        self.assertTrue(UserProfile.objects.filter(user=self.user).exists())
        self.assertEqual(self.user.wallet.balance, 0)

    def test_full_name(self):
        self.assertEqual(self.user.full_name, 'Ama Mensah')

    def test_superuser_creation(self):
        superuser = User.objects.create_superuser(email='root@example.com', password=STRONG_PASSWORD)
        self.assertTrue(superuser.is_staff)
        self.assertTrue(superuser.is_superuser)
        self.assertEqual(superuser.role, UserRole.ADMIN)

    def test_verified_only_with_all_five_flags(self):
        for flag in User.VERIFICATION_FLAGS[:-1]:
            VerificationService.set_flag(self.user, flag, True)
        self.assertFalse(self.user.is_verified)
        self.assertEqual(self.user.verification_percentage, 80)

        VerificationService.set_flag(self.user, User.VERIFICATION_FLAGS[-1], True)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_verified)
        self.assertEqual(self.user.verification_status, VerificationStatus.VERIFIED)

        VerificationService.set_flag(self.user, 'is_phone_verified', False)
        self.assertFalse(self.user.is_verified)
        self.assertEqual(self.user.verification_status, VerificationStatus.PENDING)

    def test_unknown_flag_rejected(self):
        with self.assertRaises(ValueError):
            VerificationService.set_flag(self.user, 'is_staff', True)


class TestAuthAPI(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_tokens(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'new@example.com',
            'password': STRONG_PASSWORD,
            'first_name': 'Kofi',
            'role': UserRole.TRAVELER,
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['role'], UserRole.TRAVELER)
        self.assertEqual(len(mail.outbox), 1)

    def test_register_rejects_weak_password(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'weak@example.com',
            'password': 'password',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.data)

    def test_register_cannot_pick_admin_role(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'sneaky@example.com',
            'password': STRONG_PASSWORD,
            'role': UserRole.ADMIN,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_duplicate_email_rejected(self):
        make_user(email='taken@example.com')
        response = self.client.post('/api/auth/register/', {
            'email': 'TAKEN@example.com',
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_login_and_logout(self):
        make_user(email='login@example.com')
        response = self.client.post('/api/auth/login/', {
            'email': 'Login@Example.com',
            'password': STRONG_PASSWORD,
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['user']['email'], 'login@example.com')

        refresh = response.data['refresh']
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        response = self.client.post('/api/auth/logout/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, 200)

        response = self.client.post('/api/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, 401)

    def test_me_requires_auth(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, 401)

    def test_change_password(self):
        user = make_user()
        self.client.force_authenticate(user)
        response = self.client.post('/api/auth/change-password/', {
            'current_password': 'wrong',
            'new_password': 'N3w!Password',
        }, format='json')
        self.assertEqual(response.status_code, 400)

        response = self.client.post('/api/auth/change-password/', {
            'current_password': STRONG_PASSWORD,
            'new_password': 'N3w!Password',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertTrue(user.check_password('N3w!Password'))


class TestPasswordReset(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user()

    def test_forgot_password_does_not_leak_accounts(self):
        response = self.client.post('/api/auth/forgot-password/', {'email': 'nobody@example.com'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 0)

        response = self.client.post('/api/auth/forgot-password/', {'email': self.user.email}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)

    def test_reset_password_with_valid_token(self):
        from django.contrib.auth.tokens import default_token_generator
        from django.utils.encoding import force_bytes
        from django.utils.http import urlsafe_base64_encode

        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        response = self.client.post('/api/auth/reset-password/', {
            'uid': uid, 'token': token, 'password': 'Br4nd!New1',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Br4nd!New1'))

    def test_reset_password_bad_token(self):
        response = self.client.post('/api/auth/reset-password/', {
            'uid': 'bogus', 'token': 'bogus', 'password': 'Br4nd!New1',
        }, format='json')
        self.assertEqual(response.status_code, 400)


class TestProfileAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user(phone_number='+233201234567', is_phone_verified=True)
        self.other = make_user(email='other@example.com')

    def test_anyone_authenticated_can_read_profile(self):
        self.client.force_authenticate(self.other)
        response = self.client.get(f'/api/users/{self.user.pk}/profile/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['email'], self.user.email)

    def test_only_owner_can_edit_profile(self):
        self.client.force_authenticate(self.other)
        response = self.client.put(f'/api/users/{self.user.pk}/profile/', {'bio': 'hi'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_phone_change_resets_verification(self):
        self.client.force_authenticate(self.user)
        response = self.client.patch(f'/api/users/{self.user.pk}/profile/', {
            'phone_number': '+233209999999',
            'bio': 'Frequent flyer',
        }, format='json')
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_phone_verified)
        self.assertEqual(self.user.profile.bio, 'Frequent flyer')

    def test_stats_owner_only(self):
        self.client.force_authenticate(self.other)
        response = self.client.get(f'/api/users/{self.user.pk}/stats/')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(self.user)
        response = self.client.get(f'/api/users/{self.user.pk}/stats/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['packagesSent'], 0)

    def test_activity_feed(self):
        self.client.force_authenticate(self.user)
        response = self.client.get(f'/api/users/{self.user.pk}/activity/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['activities'], [])

    def test_activity_limit_is_clamped(self):
        from logistics.tests import make_package

        make_package(self.user)
        make_package(self.user)
        self.client.force_authenticate(self.user)
        for limit, expected in (('-1', 1), ('0', 1), ('abc', 2), ('500', 2)):
            response = self.client.get(f'/api/users/{self.user.pk}/activity/', {'limit': limit})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(len(response.data['activities']), expected)


class TestPhoneVerification(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user(phone_number='+233201234567')
        self.client.force_authenticate(self.user)

    @patch.object(NaloSMSService, 'send_sms', return_value='1701')
    def test_send_and_verify_code(self, mock_send):
        response = self.client.post('/api/auth/send-phone-code/', {'phone_number': '+233 20 123 4567'}, format='json')
        self.assertEqual(response.status_code, 200)
        mock_send.assert_called_once()

        code = PhoneVerification.objects.get(user=self.user).code
        response = self.client.post('/api/auth/verify-phone/', {'code': code}, format='json')
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_phone_verified)
        self.assertFalse(PhoneVerification.objects.filter(user=self.user).exists())

    def test_phone_must_belong_to_user(self):
        response = self.client.post('/api/auth/send-phone-code/', {'phone_number': '+233200000000'}, format='json')
        self.assertEqual(response.status_code, 400)

    @patch.object(NaloSMSService, 'send_sms', return_value='1701')
    def test_sms_rate_limit(self, mock_send):
        for _ in range(2):
            VerificationService.send_phone_code(self.user, self.user.phone_number)
        response = self.client.post('/api/auth/send-phone-code/', {'phone_number': self.user.phone_number}, format='json')
        self.assertEqual(response.status_code, 429)

    @patch.object(NaloSMSService, 'send_sms', side_effect=SMSError('Insufficient balance'))
    def test_gateway_failure(self, mock_send):
        response = self.client.post('/api/auth/send-phone-code/', {'phone_number': self.user.phone_number}, format='json')
        self.assertEqual(response.status_code, 502)

    def test_wrong_code_counts_attempts(self):
        PhoneVerification.objects.create(
            user=self.user, phone_number=self.user.phone_number, code='123456',
            expires_at=timezone.now() + timedelta(minutes=15),
        )
        self.assertFalse(VerificationService.verify_phone_code(self.user, '000000'))
        self.assertEqual(PhoneVerification.objects.get(user=self.user).attempts, 1)

        PhoneVerification.objects.filter(user=self.user).update(attempts=5)
        with self.assertRaises(ValueError):
            VerificationService.verify_phone_code(self.user, '123456')

    def test_expired_code(self):
        PhoneVerification.objects.create(
            user=self.user, phone_number=self.user.phone_number, code='123456',
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        response = self.client.post('/api/auth/verify-phone/', {'code': '123456'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('expired', response.data['error'])


class TestNaloSMSService(TestCase):

    def test_parse_success(self):
        self.assertEqual(NaloSMSService.parse_response('1701|233201234567|abc'), '1701|233201234567|abc')

    def test_parse_error_code(self):
        with self.assertRaises(SMSError):
            NaloSMSService.parse_response('1702')

    @override_settings(NALO_API_KEY='')
    def test_not_configured(self):
        with self.assertRaises(SMSError):
            NaloSMSService.send_sms('+233201234567', 'hello')

    @override_settings(SMS_RATE_LIMIT=(1, 60))
    def test_rate_limit_window(self):
        NaloSMSService.check_rate_limit('+233201234567')
        with self.assertRaises(SMSRateLimited):
            NaloSMSService.check_rate_limit('+233201234567')


class TestEmailAndDocuments(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user()
        self.admin = make_user(email='admin@example.com', role=UserRole.ADMIN)

    def test_confirm_email_token(self):
        token = VerificationService.make_email_token(self.user)
        response = self.client.get('/api/auth/verify-email/', {'token': token})
        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_email_verified)

    def test_tampered_email_token(self):
        response = self.client.get('/api/auth/verify-email/', {'token': 'abc:def'})
        self.assertEqual(response.status_code, 400)

    def test_upload_and_reject_document(self):
        self.client.force_authenticate(self.user)
        response = self.client.post('/api/verification/documents/', {
            'document_type': DocumentType.PASSPORT,
            'document_url': 'https://cdn.example.com/passport.jpg',
        }, format='json')
        self.assertEqual(response.status_code, 201)

        document = VerificationDocument.objects.get(pk=response.data['id'])
        VerificationService.approve_document(document, self.admin)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_id_verified)

        with self.assertRaises(ValueError):
            VerificationService.reject_document(document, self.admin, '  ')

        VerificationService.reject_document(document, self.admin, 'Blurry photo')
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_id_verified)
        self.assertFalse(self.user.is_verified)
        self.assertEqual(self.user.verification_status, VerificationStatus.PENDING)

    def test_verification_progress(self):
        VerificationService.set_flag(self.user, 'is_email_verified', True)
        self.client.force_authenticate(self.user)
        response = self.client.get('/api/auth/verification-progress/')
        self.assertEqual(response.data['completed'], 1)
        self.assertEqual(response.data['percentage'], 20)


class TestSubscription(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user()

    def test_free_plan_limit(self):
        self.assertEqual(SubscriptionService.remaining_posts(self.user), 3)

    def test_system_config_overrides_limit(self):
        SystemConfig.objects.create(key='free_plan_post_limit', value='7')
        self.assertEqual(SubscriptionService.plan_limit(SubscriptionTier.FREE), 7)

    def test_expired_subscription_downgraded(self):
        SubscriptionService.activate(self.user, SubscriptionTier.PREMIUM, paid_at=timezone.now() - timedelta(days=40))
        status = SubscriptionService.check_status(self.user)
        self.assertTrue(status['needsResubscribe'])
        self.user.refresh_from_db()
        self.assertEqual(self.user.subscription_tier, SubscriptionTier.FREE)
        self.assertEqual(self.user.subscription_status, SubscriptionStatus.INACTIVE)

    def test_post_eligibility_endpoint(self):
        self.client.force_authenticate(self.user)
        response = self.client.get('/api/check-post-eligibility/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['canPost'])

        self.user.subscription_status = SubscriptionStatus.INACTIVE
        self.user.save()
        response = self.client.get('/api/check-post-eligibility/')
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['canPost'])

    def test_expire_overdue(self):
        SubscriptionService.activate(self.user, SubscriptionTier.STANDARD, paid_at=timezone.now() - timedelta(days=45))
        fresh = make_user(email='fresh@example.com')
        SubscriptionService.activate(fresh, SubscriptionTier.STANDARD)

        self.assertEqual(SubscriptionService.expire_overdue(), 1)
        fresh.refresh_from_db()
        self.assertEqual(fresh.subscription_tier, SubscriptionTier.STANDARD)

    def test_cron_endpoint_requires_api_key(self):
        response = self.client.post('/api/cron/update-subscriptions/')
        self.assertIn(response.status_code, [401, 403])

        _, key = APIKey.objects.create_key(name='scheduler')
        response = self.client.post('/api/cron/update-subscriptions/', HTTP_AUTHORIZATION=f'Api-Key {key}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['updated'], 0)


class TestSecurityMiddleware(TestCase):
    """Tests for security middleware behavior."""

    def test_health_endpoint_accessible(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'ok')
        self.assertEqual(data['service'], 'amenade-api')

    def test_readiness_endpoint_accessible(self):
        response = self.client.get('/health/ready/')
        self.assertIn(response.status_code, [200, 503])
        self.assertIn('checks', response.json())

    def test_detailed_health_requires_staff(self):
        response = self.client.get('/health/detailed/')
        self.assertEqual(response.status_code, 403)

    def test_security_headers_present(self):
        response = self.client.get('/health/')
        self.assertEqual(response['X-Content-Type-Options'], 'nosniff')
        self.assertIn('Referrer-Policy', response)

    def test_login_rate_limited(self):
        for _ in range(10):
            self.client.post('/api/auth/login/', {'email': 'x@example.com', 'password': 'x'})
        response = self.client.post('/api/auth/login/', {'email': 'x@example.com', 'password': 'x'})
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '60')
