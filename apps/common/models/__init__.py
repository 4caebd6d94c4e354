"""
Common models module.
"""
from .audit import AuditLog

__all__ = [
    'AuditLog',
]
