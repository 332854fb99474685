"""
MESSAGING App - WebSocket Consumers

Provides real-time updates for:
- Chat rooms (participants only)
- Per-user notification stream
"""

import logging
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from channels.db import database_sync_to_async

from .events import chat_group, user_group

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for a chat room.

    Clients connect to: ws://host/ws/chat/<chat_id>/

    Events received:
    - chat_message: a participant posted a message
    - message_hidden: an admin moderated a message
    """

    async def connect(self):
        self.chat_id = self.scope['url_route']['kwargs']['chat_id']
        self.room_group_name = chat_group(self.chat_id)
        user = self.scope.get('user')

        if not user or not user.is_authenticated:
            await self.close(code=4001)
            return

        if not await self.is_participant(user):
            await self.close(code=4003)
            return

        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()
        await self.send_json({'type': 'connection_established', 'chat_id': self.chat_id})

        logger.info(f"[WS] User {user.pk} joined chat {self.chat_id[:8]}")

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)

    async def receive_json(self, content):
        """Messages are posted through the REST API; the socket only reads."""
        message_type = content.get('type')

        if message_type == 'ping':
            await self.send_json({'type': 'pong'})
        elif message_type == 'typing':
            await self.channel_layer.group_send(
                self.room_group_name,
                {'type': 'user_typing', 'user_id': str(self.scope['user'].pk)}
            )

    # ============================================
    # Event Handlers (called via channel_layer.group_send)
    # ============================================

    async def chat_message(self, event):
        await self.send_json({'type': 'message', 'message': event['message']})

    async def message_hidden(self, event):
        await self.send_json({
            'type': 'message_hidden',
            'message_id': event['message_id'],
            'timestamp': event['timestamp'],
        })

    async def user_typing(self, event):
        if event['user_id'] != str(self.scope['user'].pk):
            await self.send_json({'type': 'typing', 'user_id': event['user_id']})

    # ============================================
    # Database helpers
    # ============================================

    @database_sync_to_async
    def is_participant(self, user) -> bool:
        from messaging.models import ChatParticipant
        return ChatParticipant.objects.filter(chat_id=self.chat_id, user=user).exists()


class NotificationConsumer(AsyncJsonWebsocketConsumer):
    """
    Personal notification stream.

    Clients connect to: ws://host/ws/notifications/
    """

    async def connect(self):
        user = self.scope.get('user')
        if not user or not user.is_authenticated:
            await self.close(code=4001)
            return

        self.group_name = user_group(user.pk)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json({
            'type': 'connection_established',
            'unread_count': await self.get_unread_count(user),
        })

    async def disconnect(self, close_code):
        if hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content):
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    async def notification_created(self, event):
        await self.send_json({'type': 'notification', 'notification': event['notification']})

    @database_sync_to_async
    def get_unread_count(self, user) -> int:
        from messaging.services import NotificationService
        return NotificationService.unread_count(user)
