"""
MESSAGING App - Real-time Event Broadcasting

Utility functions to push chat messages and notifications via Django Channels.
Used by services after the database write has happened.
"""

import logging
from django.utils import timezone

logger = logging.getLogger(__name__)


def get_channel_layer():
    """Get the Django Channels layer (lazy import)."""
    from channels.layers import get_channel_layer as _get_channel_layer
    return _get_channel_layer()


def _send_group_event(group_name: str, event: dict):
    """Send event to a channel group."""
    channel_layer = get_channel_layer()
    if not channel_layer:
        return False

    try:
        from asgiref.sync import async_to_sync
        async_to_sync(channel_layer.group_send)(group_name, event)
        return True
    except Exception as e:
        logger.error(f"[EVENTS] Failed to send to group {group_name}: {e}")
        return False


def chat_group(chat_id) -> str:
    return f'chat_{chat_id}'


def user_group(user_id) -> str:
    return f'user_{user_id}'


# ============================================
# CHAT EVENTS
# ============================================

def broadcast_chat_message(message):
    """Push a new message to everyone connected to the chat room."""
    sent = _send_group_event(
        chat_group(message.chat_id),
        {
            'type': 'chat_message',
            'message': {
                'id': str(message.id),
                'chatId': str(message.chat_id),
                'senderId': str(message.sender_id),
                'content': message.content,
                'messageType': message.message_type,
                'attachments': message.attachments,
                'createdAt': message.created_at.isoformat(),
            },
        }
    )
    logger.debug(f"[EVENTS] Broadcasted message {str(message.id)[:8]} to chat {str(message.chat_id)[:8]}")
    return sent


def broadcast_message_hidden(message):
    return _send_group_event(
        chat_group(message.chat_id),
        {
            'type': 'message_hidden',
            'message_id': str(message.id),
            'timestamp': timezone.now().isoformat(),
        }
    )


# ============================================
# NOTIFICATION EVENTS
# ============================================

def push_notification(notification):
    """Push a notification to the user's personal channel."""
    return _send_group_event(
        user_group(notification.user_id),
        {
            'type': 'notification_created',
            'notification': {
                'id': str(notification.id),
                'type': notification.notification_type,
                'title': notification.title,
                'message': notification.message,
                'packageId': str(notification.package_id) if notification.package_id else None,
                'tripId': str(notification.trip_id) if notification.trip_id else None,
                'chatId': str(notification.chat_id) if notification.chat_id else None,
                'createdAt': notification.created_at.isoformat(),
            },
        }
    )
