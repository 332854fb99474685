"""
SUPPORT App - Disputes & Refunds for AMENADE
"""

import uuid
from django.db import models
from django.conf import settings
from decimal import Decimal


class DisputeStatus(models.TextChoices):
    OPEN = 'OPEN', 'Open'
    IN_REVIEW = 'IN_REVIEW', 'In review'
    RESOLVED = 'RESOLVED', 'Resolved'
    CLOSED = 'CLOSED', 'Closed'


class DisputeType(models.TextChoices):
    PAYMENT_ISSUE = 'payment_issue', 'Payment Issue'
    DAMAGED_PACKAGE = 'damaged_package', 'Package Damage'
    NON_DELIVERY = 'non_delivery', 'Non-Delivery'
    OTHER = 'other', 'General Dispute'


# Dashboard triage
DISPUTE_PRIORITY = {
    DisputeType.PAYMENT_ISSUE: 'high',
    DisputeType.NON_DELIVERY: 'high',
    DisputeType.DAMAGED_PACKAGE: 'medium',
}

# Dashboard filter aliases
STATUS_ALIASES = {
    'open': DisputeStatus.OPEN,
    'in_progress': DisputeStatus.IN_REVIEW,
    'investigating': DisputeStatus.IN_REVIEW,
    'in_review': DisputeStatus.IN_REVIEW,
    'resolved': DisputeStatus.RESOLVED,
    'dismissed': DisputeStatus.CLOSED,
    'closed': DisputeStatus.CLOSED,
}


class Dispute(models.Model):
    """
    A reported conflict between two users about a package or a trip.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reported_disputes',
        verbose_name="Reported by"
    )
    involved = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='involved_disputes',
        verbose_name="Against"
    )
    package = models.ForeignKey(
        'logistics.Package',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='disputes'
    )
    trip = models.ForeignKey(
        'logistics.Trip',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='disputes'
    )

    # Status the package had when the dispute was opened
    package_status_before = models.CharField(max_length=20, blank=True)

    dispute_type = models.CharField(
        max_length=30,
        choices=DisputeType.choices,
        default=DisputeType.OTHER,
        verbose_name="Category"
    )
    title = models.CharField(max_length=200, blank=True)
    description = models.TextField(verbose_name="Detailed description")
    evidence = models.JSONField(default=list, blank=True, verbose_name="Evidence URLs")
    status = models.CharField(
        max_length=20,
        choices=DisputeStatus.choices,
        default=DisputeStatus.OPEN,
        verbose_name="Status"
    )

    # Resolution
    resolution = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='resolved_disputes'
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    refund_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name="Refunded amount"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Dispute"
        verbose_name_plural = "Disputes"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"Dispute {str(self.id)[:8]} - {self.get_dispute_type_display()}"

    def save(self, *args, **kwargs):
        if not self.title:
            self.title = self.get_dispute_type_display()
        super().save(*args, **kwargs)

    @property
    def priority(self) -> str:
        return DISPUTE_PRIORITY.get(self.dispute_type, 'low')

    @property
    def is_closed(self) -> bool:
        return self.status in (DisputeStatus.RESOLVED, DisputeStatus.CLOSED)


class RefundStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    COMPLETED = 'COMPLETED', 'Completed'
    FAILED = 'FAILED', 'Failed'


class Refund(models.Model):
    """
    Refund granted when resolving a dispute, linked to its wallet transaction.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dispute = models.OneToOneField(Dispute, on_delete=models.CASCADE, related_name='refund')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='dispute_refunds',
        verbose_name="Beneficiary"
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    transaction = models.OneToOneField(
        'finance.Transaction',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='refund_record'
    )
    status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.PENDING
    )
    reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Refund"
        verbose_name_plural = "Refunds"
        ordering = ['-created_at']

    def __str__(self):
        return f"Refund {self.amount} - {self.user.email}"
