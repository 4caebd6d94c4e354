"""
Promo code handlers.

A handler takes (amount, promo_code, user) and returns the amount to charge.
The active handler is named by settings.MEMBERSHIP_PROMO_HANDLER.
"""
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string


def passthrough_promo(amount, promo_code, user):
    return amount


def apply_promo(amount, promo_code, user):
    if not promo_code:
        return amount
    handler = import_string(settings.MEMBERSHIP_PROMO_HANDLER)
    return max(Decimal('0'), Decimal(str(handler(amount, promo_code, user))))
