from django.db import models


class MembershipTier(models.Model):
    """Seeded copy of the configured tier table"""

    name = models.CharField(max_length=20, unique=True)
    description = models.CharField(max_length=200, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    duration_months = models.PositiveIntegerField(null=True, blank=True, help_text="Empty for non-expiring tiers")
    benefits = models.JSONField(default=list)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'membership_tiers'
        ordering = ['price']

    def __str__(self):
        return self.name

    @property
    def is_expiring(self):
        return self.duration_months is not None
