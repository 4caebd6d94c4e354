from django.db import models
from django.conf import settings
from django.utils import timezone


class MembershipRenewal(models.Model):
    """Record of a tier transition; written once per upgrade or renewal"""

    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'

    STATUS_CHOICES = [
        (COMPLETED, 'Completed'),
        (FAILED, 'Failed'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='membership_renewals')
    old_tier = models.CharField(max_length=20)
    new_tier = models.CharField(max_length=20)
    renewal_date = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    payment_id = models.CharField(max_length=100, blank=True)
    auto_renew = models.BooleanField(default=False)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=COMPLETED)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'membership_renewals'
        ordering = ['-renewal_date']
        indexes = [
            models.Index(fields=['user', 'renewal_date']),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.old_tier} -> {self.new_tier}"
