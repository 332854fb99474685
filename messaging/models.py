"""
MESSAGING App - Chats, Messages & Notifications for AMENADE

Handles: Conversations between senders and travelers, in-app notifications
"""

import uuid
from django.db import models
from django.conf import settings


class ChatType(models.TextChoices):
    PACKAGE_NEGOTIATION = 'PACKAGE_NEGOTIATION', 'Package negotiation'
    TRIP_COORDINATION = 'TRIP_COORDINATION', 'Trip coordination'
    SUPPORT = 'SUPPORT', 'Support'
    NOTIFICATION = 'NOTIFICATION', 'Notification'


class Chat(models.Model):
    """A conversation thread, optionally tied to a package and/or a trip."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chat_type = models.CharField(
        max_length=30,
        choices=ChatType.choices,
        default=ChatType.PACKAGE_NEGOTIATION
    )
    package = models.ForeignKey(
        'logistics.Package',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='chats'
    )
    trip = models.ForeignKey(
        'logistics.Trip',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='chats'
    )
    participants = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='ChatParticipant',
        related_name='chats'
    )
    is_active = models.BooleanField(default=True)
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Chat"
        verbose_name_plural = "Chats"
        ordering = ['-updated_at']

    def __str__(self):
        return f"{self.get_chat_type_display()} {str(self.id)[:8]}"

    def has_participant(self, user) -> bool:
        return self.memberships.filter(user=user).exists()


class ChatParticipant(models.Model):
    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='chat_memberships'
    )
    joined_at = models.DateTimeField(auto_now_add=True)
    last_read_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ['chat', 'user']

    def __str__(self):
        return f"{self.user_id} in {str(self.chat_id)[:8]}"


class MessageType(models.TextChoices):
    TEXT = 'text', 'Text'
    IMAGE = 'image', 'Image'
    FILE = 'file', 'File'
    LOCATION = 'location', 'Location'
    SYSTEM = 'system', 'System'


class Message(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sent_messages'
    )
    content = models.TextField(max_length=1000)
    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT
    )
    attachments = models.JSONField(default=list, blank=True)
    is_deleted = models.BooleanField(default=False, verbose_name="Hidden")
    moderation_action = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Message"
        verbose_name_plural = "Messages"
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['chat', 'created_at']),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.content[:40]}"


class NotificationType(models.TextChoices):
    PACKAGE_MATCH = 'PACKAGE_MATCH', 'Package matched'
    TRIP_REQUEST = 'TRIP_REQUEST', 'Trip request'
    MESSAGE_RECEIVED = 'MESSAGE_RECEIVED', 'New message'
    PAYMENT_RECEIVED = 'PAYMENT_RECEIVED', 'Payment received'
    DELIVERY_CONFIRMATION = 'DELIVERY_CONFIRMATION', 'Delivery confirmed'
    DISPUTE_UPDATE = 'DISPUTE_UPDATE', 'Dispute update'
    SYSTEM_ALERT = 'SYSTEM_ALERT', 'System alert'


class Notification(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications'
    )
    notification_type = models.CharField(max_length=30, choices=NotificationType.choices)
    title = models.CharField(max_length=200)
    message = models.TextField()
    package = models.ForeignKey(
        'logistics.Package',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    trip = models.ForeignKey(
        'logistics.Trip',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    chat = models.ForeignKey(
        Chat,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    metadata = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Notification"
        verbose_name_plural = "Notifications"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read', 'created_at']),
        ]

    def __str__(self):
        return f"{self.notification_type} → {self.user_id}"
