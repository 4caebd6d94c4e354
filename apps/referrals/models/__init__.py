"""
Referral models module.
"""
from .referral import Referral
from .commission import CommissionRule, CommissionPayout

__all__ = [
    'Referral',
    'CommissionRule',
    'CommissionPayout',
]
