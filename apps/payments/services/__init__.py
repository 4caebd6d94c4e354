"""
Payment services module.
"""
from .payment_service import PaymentError, PaymentService

__all__ = [
    'PaymentError',
    'PaymentService',
]
