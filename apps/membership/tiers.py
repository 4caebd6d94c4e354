"""
Membership tier configuration.

The tier table is read from settings.MEMBERSHIP_TIERS once and exposed as an
immutable mapping. It is rebuilt when the setting changes (override_settings).
"""
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from types import MappingProxyType
from typing import Optional, Tuple

from django.conf import settings


@dataclass(frozen=True)
class TierConfig:
    name: str
    price: Decimal
    duration_months: Optional[int]
    benefits: Tuple[str, ...]

    @property
    def is_expiring(self):
        return self.duration_months is not None

    @property
    def description(self):
        return f"{self.name.title()} membership"


@lru_cache(maxsize=None)
def get_tier_table():
    return MappingProxyType({
        name: TierConfig(
            name=name,
            price=Decimal(str(config['price'])),
            duration_months=config.get('duration_months'),
            benefits=tuple(config.get('benefits', ())),
        )
        for name, config in settings.MEMBERSHIP_TIERS.items()
    })


def get_tier(name):
    return get_tier_table().get(name)


def tier_ordinal(name):
    """Position in MEMBERSHIP_TIER_ORDER; unknown tiers rank below all others"""
    order = settings.MEMBERSHIP_TIER_ORDER
    return order.index(name) if name in order else -1


def reload_tier_table(setting, **kwargs):
    if setting == 'MEMBERSHIP_TIERS':
        get_tier_table.cache_clear()
