from django.db import models
from django.conf import settings
from django.utils import timezone


class Referral(models.Model):
    """
    One row per generated referral code.

    Status only moves forward: PENDING (code issued) -> CONFIRMED (redeemed
    with an email) -> PAID (commission computed). paid_at is stamped when the
    commission is paid out to the referrer.
    """

    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    PAID = 'PAID'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (PAID, 'Paid'),
    ]

    referrer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='referrals')
    code = models.CharField(max_length=20, unique=True)
    email = models.EmailField(blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    commission = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'referrals'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['referrer', 'status']),
        ]

    def __str__(self):
        return f"{self.code} ({self.status})"
