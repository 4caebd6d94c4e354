"""
Notification serializers module.
"""
from .payload_serializers import NotificationPayloadSerializer, NotificationTemplateSerializer

__all__ = [
    'NotificationPayloadSerializer',
    'NotificationTemplateSerializer',
]
