"""
AMENADE Messaging Tests
=======================

Chats, messages, moderation, notifications and the WebSocket consumers.
"""

from datetime import timedelta
from unittest.mock import patch

from channels.db import database_sync_to_async
from channels.testing import WebsocketCommunicator
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from amenade_core.asgi import application
from core.models import UserRole
from logistics.tests import make_user, make_package
from messaging.models import ChatType, Message, Notification, NotificationType
from messaging.services import ChatService, NotificationService, moderate_message


class TestChatService(TestCase):

    def setUp(self):
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.package = make_package(self.sender)

    def test_find_or_create_is_idempotent(self):
        chat, created = ChatService.find_or_create(self.traveler, self.sender, 'package', self.package)
        again, created_again = ChatService.find_or_create(self.sender, self.traveler, 'package', self.package)
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(chat.id, again.id)
        self.assertEqual(chat.chat_type, ChatType.PACKAGE_NEGOTIATION)

    def test_cannot_chat_with_self(self):
        with self.assertRaises(ValueError):
            ChatService.find_or_create(self.sender, self.sender, 'package', self.package)

    def test_send_message_notifies_other_participant(self):
        chat, _ = ChatService.find_or_create(self.traveler, self.sender, 'package', self.package)
        with patch('messaging.services.events.broadcast_chat_message') as broadcast:
            with self.captureOnCommitCallbacks(execute=True):
                message = ChatService.send_message(chat, self.traveler, '  Hello there  ')
        broadcast.assert_called_once_with(message)

        self.assertEqual(message.content, 'Hello there')
        chat.refresh_from_db()
        self.assertEqual(chat.last_message_at, message.created_at)
        self.assertEqual(ChatService.unread_count(chat, self.sender), 1)
        self.assertEqual(ChatService.unread_count(chat, self.traveler), 0)
        self.assertTrue(Notification.objects.filter(
            user=self.sender, notification_type=NotificationType.MESSAGE_RECEIVED).exists())

        ChatService.mark_read(chat, self.sender)
        self.assertEqual(ChatService.unread_count(chat, self.sender), 0)

    def test_message_rules(self):
        chat, _ = ChatService.find_or_create(self.traveler, self.sender, 'package', self.package)
        with self.assertRaises(ValueError):
            ChatService.send_message(chat, self.sender, '   ')
        with self.assertRaises(ValueError):
            ChatService.send_message(chat, self.sender, 'x' * 1001)
        with self.assertRaises(PermissionError):
            ChatService.send_message(chat, make_user('x@example.com'), 'Hi')

    def test_moderation_hides_message(self):
        chat, _ = ChatService.find_or_create(self.traveler, self.sender, 'package', self.package)
        message = ChatService.send_message(chat, self.sender, 'Call me on this number')
        with patch('messaging.services.events.broadcast_message_hidden'):
            moderate_message(message, 'flag')
        self.assertFalse(ChatService.visible_messages(chat).exists())
        with self.assertRaises(ValueError):
            moderate_message(message, 'delete')


class TestChatAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.package = make_package(self.sender)
        self.client.force_authenticate(self.traveler)

    def _open_chat(self):
        return self.client.post('/api/chats/', {
            'participantId': str(self.sender.id),
            'itemType': 'package',
            'itemId': str(self.package.id),
        }, format='json')

    def test_find_or_create(self):
        first = self._open_chat()
        second = self._open_chat()
        self.assertEqual(first.status_code, 201, first.data)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(first.data['id'], second.data['id'])
        self.assertEqual(len(first.data['participants']), 2)

    def test_unknown_item(self):
        response = self.client.post('/api/chats/', {
            'participantId': str(self.sender.id),
            'itemType': 'trip',
            'itemId': str(self.package.id),
        }, format='json')
        self.assertEqual(response.status_code, 404)

    def test_send_and_list_messages(self):
        chat_id = self._open_chat().data['id']
        for text in ('one', 'two', 'three'):
            response = self.client.post('/api/messages/', {'chatId': chat_id, 'content': text}, format='json')
            self.assertEqual(response.status_code, 201, response.data)

        base = timezone.now()
        for content, seconds in (('one', 1), ('three', 2), ('two', 3)):
            Message.objects.filter(content=content).update(created_at=base + timedelta(seconds=seconds))

        response = self.client.get('/api/messages/', {'chatId': chat_id, 'limit': 2})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([m['content'] for m in response.data['messages']], ['three', 'two'])
        self.assertEqual(response.data['pagination'], {'page': 1, 'limit': 2, 'total': 3, 'pages': 2})

        response = self.client.get('/api/messages/', {'chatId': chat_id, 'limit': 2, 'page': 2})
        self.assertEqual([m['content'] for m in response.data['messages']], ['one'])

    def test_outsider_cannot_read_messages(self):
        chat_id = self._open_chat().data['id']
        self.client.force_authenticate(make_user('x@example.com'))
        response = self.client.get('/api/messages/', {'chatId': chat_id})
        self.assertEqual(response.status_code, 404)
        response = self.client.post('/api/messages/', {'chatId': chat_id, 'content': 'hi'}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_chat_list_shows_unread(self):
        chat_id = self._open_chat().data['id']
        self.client.post('/api/messages/', {'chatId': chat_id, 'content': 'Still available?'}, format='json')

        self.client.force_authenticate(self.sender)
        response = self.client.get('/api/chats/')
        entry = response.data['results'][0]
        self.assertEqual(entry['unread_count'], 1)
        self.assertEqual(entry['last_message']['content'], 'Still available?')

        self.client.post(f'/api/chats/{chat_id}/read/')
        response = self.client.get('/api/chats/')
        self.assertEqual(response.data['results'][0]['unread_count'], 0)


class TestNotificationAPI(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('user@example.com')
        self.client.force_authenticate(self.user)
        self.first = NotificationService.notify(self.user, NotificationType.SYSTEM_ALERT, 'One', 'First')
        self.second = NotificationService.notify(self.user, NotificationType.SYSTEM_ALERT, 'Two', 'Second')

    def test_push_happens_on_commit(self):
        with patch('messaging.services.events.push_notification') as push:
            with self.captureOnCommitCallbacks(execute=True):
                notification = NotificationService.notify(self.user, NotificationType.SYSTEM_ALERT, 'Hi', 'There')
        push.assert_called_once_with(notification)

    def test_list_unread_and_counts(self):
        NotificationService.mark_read(self.first)
        response = self.client.get('/api/notifications/', {'unreadOnly': 'true'})
        self.assertEqual([n['id'] for n in response.data['results']], [str(self.second.id)])

        response = self.client.get('/api/notifications/unread-count/')
        self.assertEqual(response.data['count'], 1)

    def test_read_all_and_delete(self):
        response = self.client.post('/api/notifications/read-all/')
        self.assertEqual(response.data['updated'], 2)

        response = self.client.delete(f'/api/notifications/{self.first.id}/')
        self.assertEqual(response.status_code, 204)
        self.first.refresh_from_db()
        self.assertTrue(self.first.is_deleted)
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_mark_one_read(self):
        response = self.client.post(f'/api/notifications/{self.first.id}/read/')
        self.assertTrue(response.data['is_read'])

    def test_other_users_notifications_hidden(self):
        self.client.force_authenticate(make_user('other@example.com'))
        response = self.client.post(f'/api/notifications/{self.first.id}/read/')
        self.assertEqual(response.status_code, 404)

    def test_only_admin_creates(self):
        payload = {'userId': str(self.user.id), 'title': 'Maintenance', 'message': 'Tonight'}
        self.assertEqual(self.client.post('/api/notifications/', payload, format='json').status_code, 403)

        self.client.force_authenticate(make_user('admin@example.com', UserRole.ADMIN))
        response = self.client.post('/api/notifications/', payload, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['notification_type'], NotificationType.SYSTEM_ALERT)


class TestRealtimeConsumers(TransactionTestCase):
    """WebSocket connections authenticated with the API's access tokens."""

    def setUp(self):
        self.sender = make_user('sender@example.com')
        self.traveler = make_user('traveler@example.com', UserRole.TRAVELER)
        self.outsider = make_user('outsider@example.com')
        self.package = make_package(self.sender)
        self.chat, _ = ChatService.find_or_create(self.traveler, self.sender, 'package', self.package)

    def _communicator(self, path, user=None, bearer=False):
        headers = [(b'origin', b'http://localhost')]
        if user is not None:
            token = str(AccessToken.for_user(user))
            if bearer:
                headers.append((b'authorization', f'Bearer {token}'.encode()))
            else:
                path = f'{path}?token={token}'
        return WebsocketCommunicator(application, path, headers=headers)

    async def test_notification_stream_with_query_token(self):
        communicator = self._communicator('/ws/notifications/', self.sender)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        welcome = await communicator.receive_json_from()
        self.assertEqual(welcome, {'type': 'connection_established', 'unread_count': 0})

        await database_sync_to_async(NotificationService.notify)(
            self.sender, NotificationType.SYSTEM_ALERT, 'Welcome', 'Your account is ready'
        )
        event = await communicator.receive_json_from()
        self.assertEqual(event['type'], 'notification')
        self.assertEqual(event['notification']['title'], 'Welcome')
        await communicator.disconnect()

    async def test_bearer_header_is_accepted(self):
        communicator = self._communicator('/ws/notifications/', self.traveler, bearer=True)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        await communicator.disconnect()

    async def test_missing_or_invalid_token_is_refused(self):
        connected, code = await self._communicator('/ws/notifications/').connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4001)

        communicator = WebsocketCommunicator(
            application, '/ws/notifications/?token=not-a-jwt',
            headers=[(b'origin', b'http://localhost')],
        )
        connected, code = await communicator.connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4001)

    async def test_chat_room_is_for_participants_only(self):
        connected, code = await self._communicator(f'/ws/chat/{self.chat.id}/', self.outsider).connect()
        self.assertFalse(connected)
        self.assertEqual(code, 4003)

    async def test_participant_receives_chat_messages(self):
        communicator = self._communicator(f'/ws/chat/{self.chat.id}/', self.traveler)
        connected, _ = await communicator.connect()
        self.assertTrue(connected)
        welcome = await communicator.receive_json_from()
        self.assertEqual(welcome['chat_id'], str(self.chat.id))

        await database_sync_to_async(ChatService.send_message)(self.chat, self.sender, 'Ready for pickup')
        event = await communicator.receive_json_from()
        self.assertEqual(event['type'], 'message')
        self.assertEqual(event['message']['content'], 'Ready for pickup')
        self.assertEqual(event['message']['senderId'], str(self.sender.id))
        await communicator.disconnect()
