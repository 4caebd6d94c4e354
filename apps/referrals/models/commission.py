from django.db import models
from django.conf import settings
from django.utils import timezone


class CommissionRule(models.Model):
    TIER_CHOICES = [
        ('TIER_1', 'Tier 1'),
        ('TIER_2', 'Tier 2'),
        ('TIER_3', 'Tier 3'),
    ]

    tier_level = models.CharField(max_length=10, choices=TIER_CHOICES, unique=True)
    percentage = models.DecimalField(max_digits=5, decimal_places=2)
    flat_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    minimum_sale = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'commission_rules'
        ordering = ['tier_level']

    def __str__(self):
        return f"{self.tier_level}: {self.percentage}% + {self.flat_amount}"

    def calculate(self, sale_amount):
        return sale_amount * self.percentage / 100 + self.flat_amount


class CommissionPayout(models.Model):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    ]

    PAYMENT_METHOD_CHOICES = [
        ('BANK_TRANSFER', 'Bank transfer'),
        ('PAYPAL', 'PayPal'),
        ('CHECK', 'Check'),
    ]

    referrer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='commission_payouts')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    commissions = models.ManyToManyField('referrals.Referral', related_name='payouts')
    payment_method = models.CharField(max_length=20, choices=PAYMENT_METHOD_CHOICES)
    payment_details = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    requested_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='processed_payouts'
    )
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'commission_payouts'
        ordering = ['-requested_at']

    def __str__(self):
        return f"Payout {self.id}: {self.amount} ({self.status})"
