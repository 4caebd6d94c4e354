"""
Membership serializers module.
"""
from .membership_serializers import (
    FeedbackProcessSerializer,
    FeedbackSubmitSerializer,
    MembershipRenewalSerializer,
    MembershipTierSerializer,
    RenewalRequestSerializer,
    UpgradeRequestSerializer,
)

__all__ = [
    'FeedbackProcessSerializer',
    'FeedbackSubmitSerializer',
    'MembershipRenewalSerializer',
    'MembershipTierSerializer',
    'RenewalRequestSerializer',
    'UpgradeRequestSerializer',
]
