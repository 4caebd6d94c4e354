"""
Test configuration for namc_server.
"""
import os

import pytest
from django.core.cache import cache


def pytest_configure():
    """Configure Django settings for testing."""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'namc_server.settings.test')


@pytest.fixture(autouse=True)
def clear_rate_limits():
    """Rate limiter counters live in the cache; start every test empty."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def cancel_scheduled_notifications():
    yield
    from apps.notifications import scheduler as notification_scheduler
    notification_scheduler.cancel_all()


@pytest.fixture
def user_factory():
    """Factory for creating test users."""
    from tests.factories import UserFactory
    return UserFactory


@pytest.fixture
def admin_user():
    """A user in the ADMIN role."""
    from tests.factories import AdminUserFactory
    return AdminUserFactory()


@pytest.fixture
def commission_rules():
    """Seed the configured commission rules."""
    from apps.referrals.services import ReferralService
    ReferralService.initialize_commission_rules()
    from apps.referrals.models import CommissionRule
    return {rule.tier_level: rule for rule in CommissionRule.objects.all()}
