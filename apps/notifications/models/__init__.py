"""
Notification models module.
"""
from .notification import Notification
from .template import NotificationTemplate

__all__ = [
    'Notification',
    'NotificationTemplate',
]
