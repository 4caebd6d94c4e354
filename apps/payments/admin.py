from django.contrib import admin
from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = [
        'transaction_id', 'user', 'amount', 'currency', 'status',
        'membership_tier', 'created_at', 'paid_at'
    ]
    list_filter = ['status', 'membership_tier', 'created_at']
    search_fields = ['transaction_id', 'external_transaction_id', 'user__username', 'user__email']
    readonly_fields = ['transaction_id', 'external_transaction_id', 'created_at', 'updated_at', 'paid_at']
    ordering = ['-created_at']
