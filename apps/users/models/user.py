from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Association member with membership tier and notification preferences"""

    REGULAR = 'REGULAR'
    PREMIUM = 'PREMIUM'
    LIFETIME = 'LIFETIME'
    HONORARY = 'HONORARY'

    MEMBER_TYPE_CHOICES = [
        (REGULAR, 'Regular'),
        (PREMIUM, 'Premium'),
        (LIFETIME, 'Lifetime'),
        (HONORARY, 'Honorary'),
    ]

    phone = models.CharField(max_length=20, null=True, blank=True)
    company = models.CharField(max_length=200, blank=True)

    member_type = models.CharField(max_length=20, choices=MEMBER_TYPE_CHOICES, default=REGULAR, db_index=True)
    member_since = models.DateTimeField(default=timezone.now)
    membership_expires_at = models.DateTimeField(
        null=True, blank=True, db_index=True,
        help_text="Null means the membership does not expire"
    )

    # Channel opt-ins; in-app notifications are always written
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=False)
    push_notifications = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return self.username or self.email or f"User {self.id}"

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username
