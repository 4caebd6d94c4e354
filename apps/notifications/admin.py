from django.contrib import admin

from .models import Notification, NotificationTemplate


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'type', 'title', 'channel', 'priority', 'is_read', 'created_at']
    list_filter = ['type', 'channel', 'priority', 'is_read']
    search_fields = ['title', 'message', 'user__username', 'user__email']
    readonly_fields = ['created_at', 'read_at']
    ordering = ['-created_at']


@admin.register(NotificationTemplate)
class NotificationTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'type', 'subject', 'is_active', 'updated_at']
    list_filter = ['type', 'is_active']
    search_fields = ['name', 'subject']
    list_editable = ['is_active']
