"""
Django Admin configuration for MESSAGING app.
"""

from django.contrib import admin
from .models import Chat, ChatParticipant, Message, Notification


class ChatParticipantInline(admin.TabularInline):
    model = ChatParticipant
    extra = 0
    raw_id_fields = ('user',)
    readonly_fields = ('joined_at', 'last_read_at')


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ('id', 'chat_type', 'package', 'trip', 'is_active', 'last_message_at')
    list_filter = ('chat_type', 'is_active')
    raw_id_fields = ('package', 'trip')
    inlines = [ChatParticipantInline]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('sender', 'chat', 'message_type', 'short_content', 'is_deleted', 'created_at')
    list_filter = ('message_type', 'is_deleted', 'moderation_action')
    search_fields = ('content', 'sender__email')
    raw_id_fields = ('chat', 'sender')
    actions = ['hide_messages']

    @admin.display(description="Content")
    def short_content(self, obj):
        return obj.content[:60]

    @admin.action(description="Hide selected messages")
    def hide_messages(self, request, queryset):
        from .services import moderate_message, ModerationAction

        for message in queryset.filter(is_deleted=False):
            moderate_message(message, ModerationAction.HIDE)
        self.message_user(request, "Messages hidden.")


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('user', 'notification_type', 'title', 'is_read', 'is_deleted', 'created_at')
    list_filter = ('notification_type', 'is_read', 'is_deleted')
    search_fields = ('title', 'message', 'user__email')
    raw_id_fields = ('user', 'package', 'trip', 'chat')
