from django.db import models
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder


class Notification(models.Model):
    """In-app notification; written for every send regardless of channel"""

    SYSTEM_ANNOUNCEMENT = 'SYSTEM_ANNOUNCEMENT'
    PAYMENT_SUCCESS = 'PAYMENT_SUCCESS'
    MEMBERSHIP_EXPIRY = 'MEMBERSHIP_EXPIRY'
    EVENT_REMINDER = 'EVENT_REMINDER'
    MESSAGE_RECEIVED = 'MESSAGE_RECEIVED'

    TYPE_CHOICES = [
        (SYSTEM_ANNOUNCEMENT, 'System announcement'),
        (PAYMENT_SUCCESS, 'Payment success'),
        (MEMBERSHIP_EXPIRY, 'Membership expiry'),
        (EVENT_REMINDER, 'Event reminder'),
        (MESSAGE_RECEIVED, 'Message received'),
    ]

    IN_APP = 'IN_APP'
    EMAIL = 'EMAIL'
    SMS = 'SMS'
    PUSH = 'PUSH'

    CHANNEL_CHOICES = [
        (IN_APP, 'In-app'),
        (EMAIL, 'Email'),
        (SMS, 'SMS'),
        (PUSH, 'Push'),
    ]

    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('NORMAL', 'Normal'),
        ('HIGH', 'High'),
        ('URGENT', 'Urgent'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    data = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES, default=IN_APP)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='NORMAL')
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read']),
            models.Index(fields=['user', 'type', 'created_at']),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.title}"
