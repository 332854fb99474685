"""
MESSAGING App - Chat & Notification Services

Business logic shared by the REST views, the assignment flow, disputes and
the admin dashboard. Real-time pushes happen after the write and never
break the calling operation.
"""

import logging
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from .models import (
    Chat, ChatParticipant, ChatType, Message, MessageType,
    Notification, NotificationType,
)
from . import events

logger = logging.getLogger(__name__)


class NotificationService:
    """Create and manage in-app notifications."""

    @staticmethod
    def notify(user, notification_type, title, message,
               package=None, trip=None, chat=None, metadata=None) -> Notification:
        notification = Notification.objects.create(
            user=user,
            notification_type=notification_type,
            title=title,
            message=message,
            package=package,
            trip=trip,
            chat=chat,
            metadata=metadata or {},
        )
        logger.info(f"[NOTIFY] {notification_type} → {user.pk}")

        # Pushed once the row is visible to other connections
        transaction.on_commit(lambda: events.push_notification(notification))
        return notification

    @staticmethod
    def for_user(user, unread_only=False):
        qs = Notification.objects.filter(user=user, is_deleted=False)
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    @staticmethod
    def unread_count(user) -> int:
        return Notification.objects.filter(user=user, is_read=False, is_deleted=False).count()

    @staticmethod
    def mark_read(notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = timezone.now()
            notification.save(update_fields=['is_read', 'read_at'])
        return notification

    @staticmethod
    def mark_all_read(user) -> int:
        return Notification.objects.filter(
            user=user, is_read=False, is_deleted=False
        ).update(is_read=True, read_at=timezone.now())

    @staticmethod
    def delete(notification):
        notification.is_deleted = True
        notification.save(update_fields=['is_deleted'])


class ChatService:
    """Conversations between users about a package or a trip."""

    @staticmethod
    @transaction.atomic
    def find_or_create(user, participant, item_type: str, item):
        """
        Return the two-party chat about a package/trip, creating it if needed.

        Returns (chat, created).
        """
        if item_type not in ('package', 'trip'):
            raise ValueError("itemType must be 'package' or 'trip'")
        if participant.pk == user.pk:
            raise ValueError("Cannot start a chat with yourself")

        item_filter = {'package': item} if item_type == 'package' else {'trip': item}
        candidates = (
            Chat.objects.filter(**item_filter)
            .exclude(chat_type=ChatType.NOTIFICATION)
            .annotate(
                member_count=Count('memberships', distinct=True),
                matched=Count(
                    'memberships',
                    filter=Q(memberships__user__in=[user, participant]),
                    distinct=True
                ),
            )
            .filter(member_count=2, matched=2)
        )
        chat = candidates.first()
        if chat:
            return chat, False

        chat = Chat.objects.create(
            chat_type=(
                ChatType.PACKAGE_NEGOTIATION if item_type == 'package'
                else ChatType.TRIP_COORDINATION
            ),
            **item_filter
        )
        ChatParticipant.objects.bulk_create([
            ChatParticipant(chat=chat, user=user),
            ChatParticipant(chat=chat, user=participant),
        ])
        logger.info(f"[CHAT] Created {chat.chat_type} {str(chat.id)[:8]}")
        return chat, True

    @staticmethod
    def find_or_create_assignment_chat(package, trip):
        """NOTIFICATION chat attached to a (package, trip) pairing."""
        chat, created = Chat.objects.get_or_create(
            package=package,
            trip=trip,
            chat_type=ChatType.NOTIFICATION,
        )
        if created:
            ChatParticipant.objects.create(chat=chat, user=package.sender)
        return chat

    @staticmethod
    def chats_for(user):
        return (
            Chat.objects.filter(memberships__user=user)
            .select_related('package', 'trip')
            .prefetch_related('memberships__user')
            .distinct()
            .order_by('-last_message_at', '-updated_at')
        )

    @staticmethod
    def get_for_participant(chat_id, user) -> Chat:
        """Raises Chat.DoesNotExist when the chat is missing or the user is not in it."""
        return Chat.objects.get(pk=chat_id, memberships__user=user)

    @staticmethod
    @transaction.atomic
    def send_message(chat, sender, content: str,
                     message_type=MessageType.TEXT, attachments=None) -> Message:
        content = (content or '').strip()
        if not content:
            raise ValueError("Message content is required")
        if len(content) > 1000:
            raise ValueError("Message cannot exceed 1000 characters")
        if not chat.has_participant(sender):
            raise PermissionError("Chat not found or access denied")

        message = Message.objects.create(
            chat=chat,
            sender=sender,
            content=content,
            message_type=message_type,
            attachments=attachments or [],
        )
        chat.last_message_at = message.created_at
        chat.save(update_fields=['last_message_at', 'updated_at'])
        ChatParticipant.objects.filter(chat=chat, user=sender).update(last_read_at=message.created_at)

        for membership in chat.memberships.exclude(user=sender).select_related('user'):
            try:
                NotificationService.notify(
                    membership.user,
                    NotificationType.MESSAGE_RECEIVED,
                    'New message',
                    f"{sender.full_name or sender.email}: {content[:80]}",
                    package=chat.package,
                    trip=chat.trip,
                    chat=chat,
                )
            except Exception as e:
                logger.warning(f"[CHAT] Notification failed for {membership.user_id}: {e}")

        transaction.on_commit(lambda: events.broadcast_chat_message(message))
        return message

    @staticmethod
    def visible_messages(chat):
        return chat.messages.filter(is_deleted=False).select_related('sender')

    @staticmethod
    def mark_read(chat, user):
        return ChatParticipant.objects.filter(chat=chat, user=user).update(last_read_at=timezone.now())

    @staticmethod
    def unread_count(chat, user) -> int:
        membership = chat.memberships.filter(user=user).first()
        qs = chat.messages.filter(is_deleted=False).exclude(sender=user)
        if membership and membership.last_read_at:
            qs = qs.filter(created_at__gt=membership.last_read_at)
        return qs.count()


class ModerationAction:
    HIDE = 'hide'
    ARCHIVE = 'archive'
    FLAG = 'flag'

    ALL = (HIDE, ARCHIVE, FLAG)


def moderate_message(message, action: str) -> Message:
    """hide / archive / flag all take the message out of the conversation."""
    if action not in ModerationAction.ALL:
        raise ValueError("Invalid action")

    message.is_deleted = True
    message.moderation_action = action
    message.save(update_fields=['is_deleted', 'moderation_action', 'updated_at'])
    logger.info(f"[MODERATION] Message {str(message.id)[:8]} → {action}")

    try:
        events.broadcast_message_hidden(message)
    except Exception as e:
        logger.warning(f"[MODERATION] Broadcast failed: {e}")
    return message
