"""
Commission rule configuration and referrer performance tiers.
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from types import MappingProxyType

from django.conf import settings


@dataclass(frozen=True)
class CommissionRuleConfig:
    tier_level: str
    percentage: Decimal
    flat_amount: Decimal
    minimum_sale: Decimal


# (minimum paid referrals, minimum total commission, tier), highest first
PERFORMANCE_TIERS = (
    (10, Decimal('500'), 'TIER_3'),
    (5, Decimal('200'), 'TIER_2'),
)
DEFAULT_TIER = 'TIER_1'


@lru_cache(maxsize=None)
def get_commission_rules():
    return MappingProxyType({
        tier_level: CommissionRuleConfig(
            tier_level=tier_level,
            percentage=Decimal(str(config['percentage'])),
            flat_amount=Decimal(str(config.get('flat_amount', 0))),
            minimum_sale=Decimal(str(config.get('minimum_sale', 0))),
        )
        for tier_level, config in settings.COMMISSION_RULES.items()
    })


def resolve_performance_tier(paid_count, total_commission):
    for min_count, min_total, tier_level in PERFORMANCE_TIERS:
        if paid_count >= min_count and total_commission >= min_total:
            return tier_level
    return DEFAULT_TIER


def reload_commission_rules(setting, **kwargs):
    if setting == 'COMMISSION_RULES':
        get_commission_rules.cache_clear()
