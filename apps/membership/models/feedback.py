from django.db import models
from django.conf import settings
from django.utils import timezone


class MemberFeedback(models.Model):
    TYPE_CHOICES = [
        ('GENERAL', 'General'),
        ('SERVICE', 'Service'),
        ('EVENT', 'Event'),
        ('PLATFORM', 'Platform'),
        ('SUGGESTION', 'Suggestion'),
    ]

    PENDING = 'PENDING'
    REVIEWED = 'REVIEWED'
    RESOLVED = 'RESOLVED'
    DISMISSED = 'DISMISSED'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (REVIEWED, 'Reviewed'),
        (RESOLVED, 'Resolved'),
        (DISMISSED, 'Dismissed'),
    ]

    # Null for anonymous submissions
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='feedback'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    rating = models.PositiveSmallIntegerField()
    subject = models.CharField(max_length=200)
    message = models.TextField()
    category = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=PENDING)
    response = models.TextField(blank=True)
    submitted_at = models.DateTimeField(default=timezone.now)
    processed_at = models.DateTimeField(null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='processed_feedback'
    )

    class Meta:
        db_table = 'member_feedback'
        ordering = ['-submitted_at']

    def __str__(self):
        return f"{self.type} feedback ({self.rating}/5): {self.subject}"
