"""
Messaging App Serializers - Chats, Messages & Notifications
"""

from rest_framework import serializers

from core.serializers import PublicUserSerializer
from .models import Chat, Message, MessageType, Notification, NotificationType


class MessageSerializer(serializers.ModelSerializer):
    sender = PublicUserSerializer(read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'chat', 'sender', 'content', 'message_type', 'attachments', 'created_at']
        read_only_fields = fields


class ChatSerializer(serializers.ModelSerializer):
    """Chat list entry: participants, the latest visible message and the caller's unread count."""

    participants = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()
    package_title = serializers.CharField(source='package.title', read_only=True, default=None)
    trip_title = serializers.CharField(source='trip.title', read_only=True, default=None)

    class Meta:
        model = Chat
        fields = [
            'id', 'chat_type', 'package', 'package_title', 'trip', 'trip_title',
            'participants', 'last_message', 'unread_count', 'is_active',
            'last_message_at', 'created_at', 'updated_at',
        ]

    def get_participants(self, obj):
        return PublicUserSerializer([m.user for m in obj.memberships.all()], many=True).data

    def get_last_message(self, obj):
        message = obj.messages.filter(is_deleted=False).select_related('sender').order_by('-created_at').first()
        return MessageSerializer(message).data if message else None

    def get_unread_count(self, obj):
        from .services import ChatService

        request = self.context.get('request')
        if request is None:
            return 0
        return ChatService.unread_count(obj, request.user)


class FindOrCreateChatSerializer(serializers.Serializer):
    participantId = serializers.UUIDField()
    itemType = serializers.ChoiceField(choices=['package', 'trip'])
    itemId = serializers.UUIDField()


class SendMessageSerializer(serializers.Serializer):
    chatId = serializers.UUIDField()
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)
    messageType = serializers.ChoiceField(choices=MessageType.choices, default=MessageType.TEXT)
    attachments = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'title', 'message', 'package', 'trip', 'chat',
            'metadata', 'is_read', 'read_at', 'created_at',
        ]
        read_only_fields = fields


class NotificationCreateSerializer(serializers.Serializer):
    userId = serializers.UUIDField()
    type = serializers.ChoiceField(choices=NotificationType.choices, default=NotificationType.SYSTEM_ALERT)
    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    metadata = serializers.DictField(required=False, default=dict)
