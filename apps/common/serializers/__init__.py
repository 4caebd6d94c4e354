"""
Common serializers module.
"""
from .audit_serializers import AuditLogSerializer, AuditQuerySerializer

__all__ = [
    'AuditLogSerializer',
    'AuditQuerySerializer',
]
