"""
Referral serializers module.
"""
from .referral_serializers import (
    PayoutRequestSerializer,
    ReferralCodeSerializer,
    ReferralSaleSerializer,
    ReferralSerializer,
    TrackReferralSerializer,
)

__all__ = [
    'PayoutRequestSerializer',
    'ReferralCodeSerializer',
    'ReferralSaleSerializer',
    'ReferralSerializer',
    'TrackReferralSerializer',
]
