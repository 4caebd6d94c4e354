from django.contrib import admin
from .models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail"""

    list_display = ['timestamp', 'user', 'action', 'resource', 'resource_id', 'ip_address']
    list_filter = ['action', 'resource', 'timestamp']
    search_fields = ['action', 'resource', 'resource_id', 'user__username', 'ip_address']
    date_hierarchy = 'timestamp'
    ordering = ['-timestamp']
    readonly_fields = [
        'user', 'action', 'resource', 'resource_id', 'old_data', 'new_data',
        'metadata', 'ip_address', 'user_agent', 'timestamp'
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
