"""
Referral services module.
"""
from .referral_service import ReferralService

__all__ = [
    'ReferralService',
]
