from django.contrib import admin

from .models import CommissionPayout, CommissionRule, Referral


@admin.register(Referral)
class ReferralAdmin(admin.ModelAdmin):
    list_display = ['code', 'referrer', 'email', 'status', 'commission', 'created_at', 'paid_at']
    list_filter = ['status', 'created_at']
    search_fields = ['code', 'email', 'referrer__email', 'referrer__username']
    readonly_fields = ['code', 'referrer', 'status', 'commission', 'created_at', 'updated_at', 'paid_at']
    ordering = ['-created_at']


@admin.register(CommissionRule)
class CommissionRuleAdmin(admin.ModelAdmin):
    list_display = ['tier_level', 'percentage', 'flat_amount', 'minimum_sale', 'is_active']
    list_editable = ['is_active']


@admin.register(CommissionPayout)
class CommissionPayoutAdmin(admin.ModelAdmin):
    """Payouts are approved or rejected through ReferralService.process_payout"""

    list_display = ['id', 'referrer', 'amount', 'payment_method', 'status', 'requested_at', 'processed_at']
    list_filter = ['status', 'payment_method']
    search_fields = ['referrer__email', 'referrer__username']
    readonly_fields = [
        'referrer', 'amount', 'commissions', 'payment_method', 'payment_details',
        'status', 'requested_at', 'processed_at', 'processed_by',
    ]
    ordering = ['-requested_at']
