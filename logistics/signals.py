"""
LOGISTICS App - Django Signals

Keep profile counters in step with trip status changes.
"""

import logging
from django.db.models import F
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from logistics.models import Trip, TripStatus

logger = logging.getLogger(__name__)


@receiver(pre_save, sender=Trip)
def capture_previous_status(sender, instance, **kwargs):
    """Remember the stored status so post_save can detect a transition."""
    instance._previous_status = None
    if not instance._state.adding:
        instance._previous_status = (
            Trip.objects.filter(pk=instance.pk).values_list('status', flat=True).first()
        )


@receiver(post_save, sender=Trip)
def on_trip_saved(sender, instance, created, **kwargs):
    """A trip reaching COMPLETED counts once towards the traveler's total_trips."""
    previous = getattr(instance, '_previous_status', None)
    if created or previous == instance.status or instance.status != TripStatus.COMPLETED:
        return

    from core.models import UserProfile
    UserProfile.objects.filter(user_id=instance.traveler_id).update(total_trips=F('total_trips') + 1)
    logger.info(f"[SIGNAL] Trip {str(instance.id)[:8]} completed by {instance.traveler_id}")
