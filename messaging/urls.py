"""
Messaging App URLs
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import ChatViewSet, MessageView, NotificationViewSet

router = DefaultRouter()
router.register(r'chats', ChatViewSet, basename='chat')
router.register(r'notifications', NotificationViewSet, basename='notification')

urlpatterns = [
    path('messages/', MessageView.as_view(), name='messages'),
    path('', include(router.urls)),
]
