from django.contrib import admin
from django.utils.html import format_html
from django.urls import reverse

from .models import MemberFeedback, MembershipRenewal, MembershipTier


@admin.register(MembershipTier)
class MembershipTierAdmin(admin.ModelAdmin):
    """Admin interface for membership tiers"""

    list_display = ['name', 'price', 'duration_months', 'is_active', 'updated_at']
    list_filter = ['is_active']
    search_fields = ['name', 'description']
    ordering = ['price']
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'description', 'is_active')
        }),
        ('Pricing', {
            'fields': ('price', 'duration_months')
        }),
        ('Benefits', {
            'fields': ('benefits',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(MembershipRenewal)
class MembershipRenewalAdmin(admin.ModelAdmin):
    """Read-only history of tier transitions"""

    list_display = [
        'user_link', 'old_tier', 'new_tier', 'amount_paid',
        'expires_at', 'status', 'renewal_date'
    ]
    list_filter = ['new_tier', 'status', 'auto_renew', 'renewal_date']
    search_fields = ['user__username', 'user__email', 'payment_id']
    ordering = ['-renewal_date']

    def user_link(self, obj):
        url = reverse('admin:users_user_change', args=[obj.user.id])
        return format_html('<a href="{}">{}</a>', url, obj.user.username)
    user_link.short_description = 'User'
    user_link.admin_order_field = 'user__username'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('user')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser


@admin.register(MemberFeedback)
class MemberFeedbackAdmin(admin.ModelAdmin):
    list_display = ['subject', 'type', 'rating', 'status', 'user', 'submitted_at', 'processed_at']
    list_filter = ['type', 'status', 'rating', 'submitted_at']
    search_fields = ['subject', 'message', 'user__email']
    ordering = ['-submitted_at']
    readonly_fields = ['user', 'type', 'rating', 'subject', 'message', 'submitted_at', 'processed_at', 'processed_by']
