from django.db import models

from .notification import Notification


class NotificationTemplate(models.Model):
    """Email template per notification type; {{placeholders}} are replaced literally"""

    name = models.CharField(max_length=100, unique=True)
    type = models.CharField(max_length=30, choices=Notification.TYPE_CHOICES)
    subject = models.CharField(max_length=200)
    template = models.TextField(help_text="HTML body with {{placeholder}} tokens")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'notification_templates'
        ordering = ['type', 'name']

    def __str__(self):
        return f"{self.name} ({self.type})"
