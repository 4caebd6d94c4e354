from django.db import models
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone
import uuid


class PaymentTransaction(models.Model):
    """Charge recorded by the payment collaborator"""

    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
        (REFUNDED, 'Refunded'),
    ]

    transaction_id = models.CharField(max_length=100, unique=True, help_text="Internal transaction ID")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payments')

    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)
    description = models.CharField(max_length=255, blank=True)

    payment_method_id = models.CharField(max_length=200, help_text="Gateway payment method reference")
    external_transaction_id = models.CharField(max_length=200, blank=True)

    # Set when the charge pays for a membership tier
    membership_tier = models.CharField(max_length=20, null=True, blank=True)

    metadata = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    paid_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user']),
            models.Index(fields=['status', 'created_at']),
        ]

    def __str__(self):
        return f"Payment {self.transaction_id} - {self.status}"

    def save(self, *args, **kwargs):
        if not self.transaction_id:
            self.transaction_id = f"pay_{uuid.uuid4().hex[:16]}"

        if self.status == self.COMPLETED and not self.paid_at:
            self.paid_at = timezone.now()

        super().save(*args, **kwargs)
