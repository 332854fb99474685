"""
CORE App - Subscription Service for AMENADE

A paid plan lasts SUBSCRIPTION_PERIOD_MONTHS after last_payment_date and
allows a fixed number of posts (packages + trips) in that period.
"""

import logging
from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.utils import timezone

from core.models import User, SystemConfig, SubscriptionTier, SubscriptionStatus

logger = logging.getLogger(__name__)


EXPIRED_REASON = 'Your subscription has expired. Please renew to continue enjoying premium features.'
EXHAUSTED_REASON = 'You have used all your available posts for this subscription period.'
INACTIVE_REASON = 'Your subscription needs to be renewed before posting.'


class SubscriptionService:

    @staticmethod
    def period() -> relativedelta:
        return relativedelta(months=getattr(settings, 'SUBSCRIPTION_PERIOD_MONTHS', 1))

    @staticmethod
    def plan_limit(tier: str) -> int:
        """Post allowance for a tier; SystemConfig overrides the settings default."""
        defaults = getattr(settings, 'SUBSCRIPTION_PLAN_LIMITS', {})
        fallback = defaults.get(tier, defaults.get(SubscriptionTier.FREE, 3))
        value = SystemConfig.get_value(f'{tier.lower()}_plan_post_limit')
        try:
            return int(value) if value is not None else fallback
        except ValueError:
            logger.warning(f"[SUBSCRIPTION] Invalid SystemConfig limit for {tier}: {value!r}")
            return fallback

    @staticmethod
    def period_start(user):
        """
        Paid users count from their last payment; free users use a rolling
        window of one period.
        """
        if user.last_payment_date:
            return user.last_payment_date
        return timezone.now() - SubscriptionService.period()

    @staticmethod
    def expires_at(user):
        if not user.last_payment_date:
            return None
        return user.last_payment_date + SubscriptionService.period()

    @staticmethod
    def is_expired(user) -> bool:
        expires_at = SubscriptionService.expires_at(user)
        return expires_at is not None and expires_at < timezone.now()

    @staticmethod
    def posts_used(user) -> int:
        from logistics.models import Package, Trip

        since = SubscriptionService.period_start(user)
        return (
            Package.objects.filter(sender=user, created_at__gte=since).count()
            + Trip.objects.filter(traveler=user, created_at__gte=since).count()
        )

    @staticmethod
    def remaining_posts(user) -> int:
        if user.subscription_status != SubscriptionStatus.ACTIVE:
            return 0
        limit = SubscriptionService.plan_limit(user.subscription_tier)
        return max(0, limit - SubscriptionService.posts_used(user))

    @staticmethod
    def expire(user, reason=EXPIRED_REASON):
        user.subscription_tier = SubscriptionTier.FREE
        user.subscription_status = SubscriptionStatus.INACTIVE
        user.save(update_fields=['subscription_tier', 'subscription_status', 'updated_at'])
        logger.info(f"[SUBSCRIPTION] User {user.pk} expired: {reason}")

    @staticmethod
    def check_status(user) -> dict:
        """Current plan state; downgrades an overdue subscription as a side effect."""
        if SubscriptionService.is_expired(user) and (
            user.subscription_status == SubscriptionStatus.ACTIVE
            or user.subscription_tier != SubscriptionTier.FREE
        ):
            SubscriptionService.expire(user)
            return {
                'currentTier': SubscriptionTier.FREE,
                'isSubscriptionActive': False,
                'remainingPosts': 0,
                'needsResubscribe': True,
                'reason': EXPIRED_REASON,
                'expiresAt': None,
            }

        remaining = SubscriptionService.remaining_posts(user)
        active = user.subscription_status == SubscriptionStatus.ACTIVE
        status = {
            'currentTier': user.subscription_tier,
            'isSubscriptionActive': active,
            'remainingPosts': remaining,
            'postLimit': SubscriptionService.plan_limit(user.subscription_tier),
            'needsResubscribe': not active or remaining <= 0,
            'expiresAt': SubscriptionService.expires_at(user),
        }
        if not active:
            status['reason'] = INACTIVE_REASON
        elif remaining <= 0:
            status['reason'] = EXHAUSTED_REASON
        return status

    @staticmethod
    def can_post(user) -> dict:
        status = SubscriptionService.check_status(user)
        if status['needsResubscribe']:
            return {
                'canPost': False,
                'message': status.get('reason', INACTIVE_REASON),
                'remainingPosts': 0,
                'currentTier': status['currentTier'],
            }
        return {
            'canPost': True,
            'remainingPosts': status['remainingPosts'],
            'currentTier': status['currentTier'],
        }

    @staticmethod
    def activate(user, tier: str, paid_at=None) -> User:
        if tier not in SubscriptionTier.values:
            raise ValueError(f"Unknown plan: {tier}")
        user.subscription_tier = tier
        user.subscription_status = SubscriptionStatus.ACTIVE
        user.last_payment_date = paid_at or timezone.now()
        user.save(update_fields=[
            'subscription_tier', 'subscription_status', 'last_payment_date', 'updated_at'
        ])
        logger.info(f"[SUBSCRIPTION] User {user.pk} activated {tier}")
        return user

    @staticmethod
    def expire_overdue() -> int:
        """Downgrade every paid subscription past its period. Returns the count."""
        cutoff = timezone.now() - SubscriptionService.period()
        updated = User.objects.filter(
            subscription_status=SubscriptionStatus.ACTIVE,
            last_payment_date__lt=cutoff,
        ).exclude(
            subscription_tier=SubscriptionTier.FREE
        ).update(
            subscription_tier=SubscriptionTier.FREE,
            subscription_status=SubscriptionStatus.INACTIVE,
            updated_at=timezone.now(),
        )
        if updated:
            logger.info(f"[SUBSCRIPTION] Updated {updated} expired subscriptions")
        return updated
