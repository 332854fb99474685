"""
CORE App - Django Signals

Every account gets a profile and a wallet as soon as it exists.
"""

import logging
from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def on_user_created(sender, instance, created, **kwargs):
    if not created:
        return

    from core.models import UserProfile
    from finance.models import Wallet

    UserProfile.objects.get_or_create(user=instance)
    Wallet.objects.get_or_create(
        user=instance,
        defaults={'currency': getattr(settings, 'DEFAULT_CURRENCY', 'USD')}
    )
    logger.info(f"[SIGNAL] Profile and wallet created for user {instance.pk}")
