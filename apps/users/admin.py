from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """User admin with membership and notification preference fields"""
    list_display = [
        'username', 'email', 'member_type', 'membership_expires_at',
        'is_active', 'is_staff', 'created_at'
    ]
    list_filter = ['member_type', 'is_staff', 'is_superuser', 'is_active', 'groups']
    search_fields = ['username', 'email', 'phone', 'company']
    ordering = ['-created_at']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('Contact', {
            'fields': ('phone', 'company')
        }),
        ('Membership', {
            'fields': ('member_type', 'member_since', 'membership_expires_at')
        }),
        ('Notification Preferences', {
            'fields': ('email_notifications', 'sms_notifications', 'push_notifications'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    readonly_fields = ['created_at', 'updated_at']
