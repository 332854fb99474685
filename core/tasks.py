"""
CORE App - Celery Tasks

Scheduled housekeeping for subscriptions and phone verification codes.
"""

import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def expire_subscriptions(self):
    """
    Downgrade paid plans whose period ended.

    Scheduled daily; the same work is exposed at /api/cron/update-subscriptions/.
    """
    from core.services.subscription import SubscriptionService

    try:
        updated = SubscriptionService.expire_overdue()
    except Exception as exc:
        logger.error(f"[CELERY] Subscription expiry failed: {exc}")
        raise self.retry(exc=exc)

    logger.info(f"[CELERY] Subscription expiry complete: {updated} updated")
    return {'updated': updated}


@shared_task
def cleanup_expired_phone_codes():
    """Delete SMS codes past their expiry. Scheduled hourly."""
    from core.services.verification import VerificationService

    deleted = VerificationService.cleanup_expired_codes()
    logger.info(f"[CELERY] Removed {deleted} expired phone codes")
    return {'deleted': deleted}
