"""
Common services module.
"""
from .audit_service import AuditService

__all__ = [
    'AuditService',
]
