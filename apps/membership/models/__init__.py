"""
Membership models module.
"""
from .tier import MembershipTier
from .renewal import MembershipRenewal
from .feedback import MemberFeedback

__all__ = [
    'MembershipTier',
    'MembershipRenewal',
    'MemberFeedback',
]
