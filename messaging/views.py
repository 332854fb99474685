"""
Messaging App Views - Chats, Messages & Notifications API
"""

import logging
from math import ceil

from rest_framework import viewsets, mixins, status, permissions
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError

from core.pagination import PageLimitPagination
from core.views import IsAdminUser
from .models import Chat, Notification
from .serializers import (
    ChatSerializer, MessageSerializer, FindOrCreateChatSerializer, SendMessageSerializer,
    NotificationSerializer, NotificationCreateSerializer,
)
from .services import ChatService, NotificationService

logger = logging.getLogger(__name__)

User = get_user_model()

MESSAGES_PAGE_SIZE = 50
MESSAGES_MAX_PAGE_SIZE = 100


def _positive_int(value, default, maximum=None):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    return min(value, maximum) if maximum else value


# ============================================
# CHATS
# ============================================

class ChatViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    The caller's chats, most recent activity first.
    POST finds the two-party chat about a package or trip, or creates it.
    """

    serializer_class = ChatSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = PageLimitPagination

    def get_queryset(self):
        return ChatService.chats_for(self.request.user)

    def create(self, request):
        from logistics.models import Package, Trip

        serializer = FindOrCreateChatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        model = Package if data['itemType'] == 'package' else Trip
        try:
            participant = User.objects.get(pk=data['participantId'], is_active=True)
            item = model.objects.get(pk=data['itemId'])
            chat, created = ChatService.find_or_create(request.user, participant, data['itemType'], item)
        except User.DoesNotExist:
            return Response({'error': 'Participant not found'}, status=status.HTTP_404_NOT_FOUND)
        except model.DoesNotExist:
            return Response({'error': f"{data['itemType'].capitalize()} not found"},
                            status=status.HTTP_404_NOT_FOUND)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(
            self.get_serializer(chat).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        chat = self.get_object()
        ChatService.mark_read(chat, request.user)
        return Response({'success': True})


class MessageView(APIView):
    """
    GET  ?chatId=&page=&limit= → one page of visible messages, oldest first.
         Page 1 holds the most recent messages.
    POST {chatId, content, messageType, attachments} → send a message.
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        chat_id = request.query_params.get('chatId')
        if not chat_id:
            return Response({'error': 'chatId is required'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            chat = ChatService.get_for_participant(chat_id, request.user)
        except (Chat.DoesNotExist, DjangoValidationError):
            return Response({'error': 'Chat not found or access denied'}, status=status.HTTP_404_NOT_FOUND)

        page = _positive_int(request.query_params.get('page'), 1)
        limit = _positive_int(request.query_params.get('limit'), MESSAGES_PAGE_SIZE, MESSAGES_MAX_PAGE_SIZE)

        qs = ChatService.visible_messages(chat)
        total = qs.count()
        offset = (page - 1) * limit
        newest_first = list(qs.order_by('-created_at')[offset:offset + limit])
        newest_first.reverse()

        return Response({
            'messages': MessageSerializer(newest_first, many=True).data,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': ceil(total / limit) if total else 0,
            },
        })

    def post(self, request):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            chat = ChatService.get_for_participant(data['chatId'], request.user)
            message = ChatService.send_message(
                chat, request.user, data['content'],
                message_type=data['messageType'], attachments=data['attachments'],
            )
        except Chat.DoesNotExist:
            return Response({'error': 'Chat not found or access denied'}, status=status.HTTP_404_NOT_FOUND)
        except PermissionError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


# ============================================
# NOTIFICATIONS
# ============================================

class NotificationViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """
    The caller's notifications (?unreadOnly=true for unread ones).
    Admins may create notifications for any user.
    """

    serializer_class = NotificationSerializer
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = PageLimitPagination

    def get_queryset(self):
        unread_only = str(self.request.query_params.get('unreadOnly', '')).lower() == 'true'
        return NotificationService.for_user(self.request.user, unread_only=unread_only)

    def get_permissions(self):
        if self.action == 'create':
            return [IsAdminUser()]
        return super().get_permissions()

    def create(self, request):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            user = User.objects.get(pk=data['userId'])
        except User.DoesNotExist:
            return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)

        notification = NotificationService.notify(
            user, data['type'], data['title'], data['message'], metadata=data['metadata']
        )
        return Response(NotificationSerializer(notification).data, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        NotificationService.delete(instance)

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'count': NotificationService.unread_count(request.user)})

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = NotificationService.mark_read(self.get_object())
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=['post'], url_path='read-all')
    def read_all(self, request):
        updated = NotificationService.mark_all_read(request.user)
        return Response({'success': True, 'updated': updated})
