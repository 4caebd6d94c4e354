"""
Tests for membership upgrades, renewals, expiry notices and feedback.
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import Mock, patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings
from django.utils import timezone
from hypothesis import assume, given, settings, strategies as st
from hypothesis.extra.django import TestCase as HypothesisTestCase

from apps.common.exceptions import ConflictError, NotFoundError, InvalidRequestError
from apps.common.models import AuditLog
from apps.membership.exceptions import InvalidTierError, NonRenewableTierError, TierDowngradeError
from apps.membership.models import MemberFeedback, MembershipRenewal, MembershipTier
from apps.membership.services import MembershipService
from apps.membership.tiers import get_tier
from apps.notifications.models import Notification
from apps.payments.models import PaymentTransaction
from apps.payments.services import PaymentError
from tests.factories import AdminUserFactory, MemberFeedbackFactory, UserFactory

User = get_user_model()

TIER_ORDER = ['REGULAR', 'PREMIUM', 'LIFETIME', 'HONORARY']

PROCESS_PAYMENT = 'apps.membership.services.membership_service.PaymentService.process_payment'


def half_price_promo(amount, promo_code, user):
    return amount / 2 if promo_code == 'HALF' else amount


def assert_close(test, actual, expected, tolerance=timedelta(seconds=60)):
    test.assertLess(abs(actual - expected), tolerance)


class TestMembershipStatus(TestCase):

    def test_days_until_expiry_rounds_up(self):
        user = UserFactory(membership_expires_at=timezone.now() + timedelta(days=10, hours=1))

        status = MembershipService.get_membership_status(user.id)

        self.assertFalse(status['is_expired'])
        self.assertEqual(status['days_until_expiry'], 11)
        self.assertEqual(status['member_type'], 'REGULAR')
        self.assertEqual(status['benefits'], ['Basic access', 'Monthly newsletter'])

    def test_expired_membership(self):
        user = UserFactory(membership_expires_at=timezone.now() - timedelta(days=3))

        status = MembershipService.get_membership_status(user.id)

        self.assertTrue(status['is_expired'])
        self.assertLessEqual(status['days_until_expiry'], -2)

    def test_non_expiring_membership(self):
        user = UserFactory(member_type='LIFETIME', membership_expires_at=None)

        status = MembershipService.get_membership_status(user.id)

        self.assertFalse(status['is_expired'])
        self.assertIsNone(status['days_until_expiry'])

    def test_unknown_user(self):
        with self.assertRaises(NotFoundError):
            MembershipService.get_membership_status(999999)


class TestUpgradeMembership(TestCase):

    def setUp(self):
        self.user = UserFactory(member_type='REGULAR')

    def test_regular_to_premium(self):
        with patch(PROCESS_PAYMENT, return_value=Mock(id=42)) as process_payment:
            result = MembershipService.upgrade_membership(self.user.id, 'PREMIUM', payment_method_id='pm_card')

        self.assertEqual(result['amount_paid'], Decimal('99'))
        self.assertEqual(result['old_tier'], 'REGULAR')
        self.assertEqual(result['new_tier'], 'PREMIUM')
        self.assertEqual(result['payment_id'], '42')
        assert_close(self, result['expires_at'], timezone.now() + timedelta(days=360))
        process_payment.assert_called_once()
        self.assertEqual(process_payment.call_args.kwargs['amount'], Decimal('99'))

        self.user.refresh_from_db()
        self.assertEqual(self.user.member_type, 'PREMIUM')
        self.assertEqual(self.user.membership_expires_at, result['expires_at'])

        renewal = MembershipRenewal.objects.get(user=self.user)
        self.assertEqual(renewal.amount_paid, Decimal('99'))
        self.assertEqual(renewal.new_tier, 'PREMIUM')

        audit = AuditLog.objects.get(action='MEMBERSHIP_UPGRADED')
        self.assertEqual(audit.old_data, {'member_type': 'REGULAR'})

        notification = Notification.objects.get(user=self.user)
        self.assertEqual(notification.channel, 'EMAIL')
        self.assertEqual(notification.title, 'Membership Upgraded Successfully')
        self.assertEqual(len(mail.outbox), 1)

    def test_payment_is_recorded(self):
        result = MembershipService.upgrade_membership(self.user.id, 'PREMIUM', payment_method_id='pm_card')

        payment = PaymentTransaction.objects.get(user=self.user)
        self.assertEqual(payment.amount, Decimal('99'))
        self.assertEqual(payment.membership_tier, 'PREMIUM')
        self.assertEqual(payment.status, PaymentTransaction.COMPLETED)
        self.assertEqual(result['payment_id'], str(payment.id))

    def test_failed_payment_leaves_membership_unchanged(self):
        with self.assertRaises(PaymentError):
            MembershipService.upgrade_membership(self.user.id, 'PREMIUM')

        self.user.refresh_from_db()
        self.assertEqual(self.user.member_type, 'REGULAR')
        self.assertFalse(MembershipRenewal.objects.exists())

    def test_upgrade_to_non_expiring_tier(self):
        with patch(PROCESS_PAYMENT, return_value=Mock(id=7)):
            result = MembershipService.upgrade_membership(self.user.id, 'LIFETIME', payment_method_id='pm_card')

        self.assertIsNone(result['expires_at'])
        self.user.refresh_from_db()
        self.assertIsNone(self.user.membership_expires_at)

    def test_unknown_tier(self):
        with self.assertRaises(InvalidTierError):
            MembershipService.upgrade_membership(self.user.id, 'PLATINUM')

    @override_settings(MEMBERSHIP_PROMO_HANDLER='tests.test_membership_service.half_price_promo')
    def test_promo_code_discount(self):
        with patch(PROCESS_PAYMENT, return_value=Mock(id=1)) as process_payment:
            result = MembershipService.upgrade_membership(
                self.user.id, 'PREMIUM', promo_code='HALF', payment_method_id='pm_card'
            )

        self.assertEqual(result['amount_paid'], Decimal('49.5'))
        self.assertEqual(process_payment.call_args.kwargs['amount'], Decimal('49.5'))

    def test_default_promo_handler_is_passthrough(self):
        with patch(PROCESS_PAYMENT, return_value=Mock(id=1)):
            result = MembershipService.upgrade_membership(
                self.user.id, 'PREMIUM', promo_code='HALF', payment_method_id='pm_card'
            )
        self.assertEqual(result['amount_paid'], Decimal('99'))

    def test_free_tier_skips_payment(self):
        tiers = {
            'REGULAR': {'price': '0', 'duration_months': 12, 'benefits': []},
            'PREMIUM': {'price': '0', 'duration_months': 6, 'benefits': ['Trial']},
        }
        with override_settings(MEMBERSHIP_TIERS=tiers):
            with patch(PROCESS_PAYMENT) as process_payment:
                result = MembershipService.upgrade_membership(self.user.id, 'PREMIUM')

        process_payment.assert_not_called()
        self.assertIsNone(result['payment_id'])
        assert_close(self, result['expires_at'], timezone.now() + timedelta(days=180))
        self.assertEqual(get_tier('PREMIUM').price, Decimal('99'))


class TestUpgradeOrderingProperties(HypothesisTestCase):

    @given(current=st.sampled_from(TIER_ORDER), target=st.sampled_from(TIER_ORDER))
    @settings(max_examples=40, deadline=None)
    def test_lateral_and_downgrades_are_rejected(self, current, target):
        """Any target whose rank is not above the current tier is rejected without side effects"""
        assume(TIER_ORDER.index(target) <= TIER_ORDER.index(current))
        user = UserFactory(member_type=current)

        with patch(PROCESS_PAYMENT) as process_payment:
            with self.assertRaises(TierDowngradeError):
                MembershipService.upgrade_membership(user.id, target, payment_method_id='pm_card')

        process_payment.assert_not_called()
        user.refresh_from_db()
        self.assertEqual(user.member_type, current)
        self.assertFalse(MembershipRenewal.objects.filter(user=user).exists())


class TestRenewMembership(TestCase):

    def test_renewal_extends_from_future_expiry(self):
        expires_at = timezone.now() + timedelta(days=10)
        user = UserFactory(member_type='PREMIUM', membership_expires_at=expires_at)

        with patch(PROCESS_PAYMENT, return_value=Mock(id=3)):
            result = MembershipService.renew_membership(user.id, months=12, payment_method_id='pm_card')

        self.assertEqual(result['expires_at'], expires_at + timedelta(days=360))
        self.assertEqual(result['amount_paid'], Decimal('99.00'))
        user.refresh_from_db()
        self.assertEqual(user.membership_expires_at, expires_at + timedelta(days=360))

    def test_renewal_of_expired_membership_starts_now(self):
        user = UserFactory(member_type='PREMIUM', membership_expires_at=timezone.now() - timedelta(days=5))

        with patch(PROCESS_PAYMENT, return_value=Mock(id=3)):
            result = MembershipService.renew_membership(user.id, months=12, payment_method_id='pm_card')

        assert_close(self, result['expires_at'], timezone.now() + timedelta(days=360))

    def test_partial_renewal_is_prorated(self):
        user = UserFactory(member_type='PREMIUM')

        with patch(PROCESS_PAYMENT, return_value=Mock(id=3)) as process_payment:
            result = MembershipService.renew_membership(user.id, months=3, payment_method_id='pm_card')

        self.assertEqual(result['amount_paid'], Decimal('24.75'))
        self.assertEqual(process_payment.call_args.kwargs['amount'], Decimal('24.75'))

    def test_renewal_records_audits_and_notifies(self):
        user = UserFactory(member_type='REGULAR')

        result = MembershipService.renew_membership(user.id, auto_renew=True)

        self.assertIsNone(result['payment_id'])
        renewal = MembershipRenewal.objects.get(user=user)
        self.assertTrue(renewal.auto_renew)
        self.assertEqual(renewal.old_tier, renewal.new_tier)
        self.assertTrue(AuditLog.objects.filter(action='MEMBERSHIP_RENEWED', resource_id=str(user.id)).exists())
        notification = Notification.objects.get(user=user)
        self.assertEqual(notification.type, 'PAYMENT_SUCCESS')
        self.assertEqual(notification.title, 'Membership Renewed Successfully')

    def test_non_expiring_tier_cannot_be_renewed(self):
        user = UserFactory(member_type='LIFETIME', membership_expires_at=None)

        with self.assertRaises(NonRenewableTierError):
            MembershipService.renew_membership(user.id)

    def test_invalid_months(self):
        user = UserFactory(member_type='PREMIUM')
        with self.assertRaises(InvalidRequestError):
            MembershipService.renew_membership(user.id, months=0)

    def test_renewal_history(self):
        user = UserFactory(member_type='REGULAR')
        for _ in range(3):
            MembershipService.renew_membership(user.id, months=1)

        history = MembershipService.get_renewal_history(user.id, limit=2)

        self.assertEqual(len(history), 2)
        self.assertEqual(history[0]['new_tier'], 'REGULAR')


class TestExpiringMemberships(TestCase):

    def test_one_notice_per_band(self):
        now = timezone.now()
        week = UserFactory(membership_expires_at=now + timedelta(days=6, hours=20))
        month = UserFactory(membership_expires_at=now + timedelta(days=29, hours=20))
        UserFactory(membership_expires_at=now + timedelta(days=12))

        summary = MembershipService.check_expiring_memberships()

        self.assertEqual(summary['notified'], {30: 1, 7: 1, 1: 0})
        self.assertEqual(Notification.objects.get(user=week).data, {'days_left': 7})
        self.assertEqual(Notification.objects.get(user=month).data, {'days_left': 30})
        self.assertEqual(Notification.objects.count(), 2)

    def test_member_expiring_within_a_day_gets_one_day_notice(self):
        now = timezone.now()
        tomorrow = UserFactory(membership_expires_at=now + timedelta(hours=12))
        day_after = UserFactory(membership_expires_at=now + timedelta(hours=36))

        summary = MembershipService.check_expiring_memberships()

        self.assertEqual(summary['notified'][1], 1)
        self.assertEqual(Notification.objects.get(user=tomorrow).data, {'days_left': 1})
        self.assertFalse(Notification.objects.filter(user=day_after).exists())
        status = MembershipService.get_membership_status(tomorrow.id)
        self.assertEqual(status['days_until_expiry'], 1)

    def test_lifetime_members_are_excluded(self):
        UserFactory(member_type='LIFETIME', membership_expires_at=timezone.now() + timedelta(hours=20))

        summary = MembershipService.check_expiring_memberships()

        self.assertEqual(summary['notified'][1], 0)
        self.assertFalse(Notification.objects.exists())

    def test_rerun_on_same_day_does_not_renotify(self):
        user = UserFactory(membership_expires_at=timezone.now() + timedelta(hours=6))

        MembershipService.check_expiring_memberships()
        summary = MembershipService.check_expiring_memberships()

        self.assertEqual(summary['notified'][1], 0)
        self.assertEqual(summary['skipped'], 1)
        self.assertEqual(Notification.objects.filter(user=user).count(), 1)


class TestSuspension(TestCase):

    def setUp(self):
        self.user = UserFactory()
        self.admin = AdminUserFactory()

    def test_suspend_and_reactivate(self):
        MembershipService.suspend_membership(self.user.id, 'Unpaid dues', self.admin.id)
        self.user.refresh_from_db()
        self.assertFalse(self.user.is_active)

        audit = AuditLog.objects.get(action='MEMBERSHIP_SUSPENDED')
        self.assertEqual(audit.user_id, self.admin.id)
        self.assertEqual(audit.new_data['reason'], 'Unpaid dues')
        suspended = Notification.objects.get(user=self.user, title='Membership Suspended')
        self.assertEqual(suspended.priority, 'HIGH')
        self.assertIn('Reason: Unpaid dues', suspended.message)

        MembershipService.reactivate_membership(self.user.id, self.admin.id)
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_active)
        self.assertTrue(AuditLog.objects.filter(action='MEMBERSHIP_REACTIVATED').exists())

    def test_double_suspend_is_rejected(self):
        MembershipService.suspend_membership(self.user.id, 'Unpaid dues', self.admin.id)
        with self.assertRaises(ConflictError):
            MembershipService.suspend_membership(self.user.id, 'Again', self.admin.id)

    def test_reactivating_active_member_is_rejected(self):
        with self.assertRaises(ConflictError):
            MembershipService.reactivate_membership(self.user.id, self.admin.id)


class TestFeedback(TestCase):

    def setUp(self):
        self.user = UserFactory()
        self.admin = AdminUserFactory()

    def test_submit_notifies_admins(self):
        result = MembershipService.submit_feedback(
            self.user.id, type='EVENT', rating=5, subject='Great mixer', message='Loved it'
        )

        feedback = MemberFeedback.objects.get(pk=result['feedback_id'])
        self.assertEqual(feedback.user, self.user)
        self.assertEqual(feedback.status, MemberFeedback.PENDING)
        admin_notice = Notification.objects.get(user=self.admin)
        self.assertEqual(admin_notice.title, 'New Member Feedback Received')
        self.assertEqual(admin_notice.message, 'New event feedback received with rating: 5/5')

    def test_anonymous_feedback_drops_user(self):
        result = MembershipService.submit_feedback(
            self.user.id, type='PLATFORM', rating=2, subject='Slow site', message='Pages load slowly',
            anonymous=True,
        )

        self.assertIsNone(MemberFeedback.objects.get(pk=result['feedback_id']).user)
        self.assertIsNone(AuditLog.objects.get(action='FEEDBACK_SUBMITTED').user_id)

    def test_rating_must_be_between_one_and_five(self):
        with self.assertRaises(InvalidRequestError):
            MembershipService.submit_feedback(self.user.id, type='GENERAL', rating=6, subject='s', message='m')

    def test_process_with_response_notifies_member(self):
        feedback = MemberFeedbackFactory(user=self.user)

        MembershipService.process_feedback(feedback.id, 'RESOLVED', response='Fixed, thanks!',
                                           admin_user_id=self.admin.id)

        feedback.refresh_from_db()
        self.assertEqual(feedback.status, MemberFeedback.RESOLVED)
        self.assertEqual(feedback.processed_by, self.admin)
        self.assertIsNotNone(feedback.processed_at)
        self.assertTrue(Notification.objects.filter(user=self.user, title='Feedback Response').exists())
        self.assertTrue(AuditLog.objects.filter(action='FEEDBACK_PROCESSED').exists())

    def test_process_without_response_does_not_notify(self):
        feedback = MemberFeedbackFactory(user=self.user)

        MembershipService.process_feedback(feedback.id, 'DISMISSED', admin_user_id=self.admin.id)

        self.assertFalse(Notification.objects.filter(user=self.user).exists())

    def test_process_missing_feedback(self):
        with self.assertRaises(NotFoundError):
            MembershipService.process_feedback(999999, 'REVIEWED')


class TestAnalyticsAndSetup(TestCase):

    def test_membership_analytics(self):
        start = timezone.now() - timedelta(days=1)
        UserFactory(member_type='REGULAR')
        premium = UserFactory(member_type='REGULAR')
        MembershipService.upgrade_membership(premium.id, 'PREMIUM', payment_method_id='pm_card')
        MemberFeedbackFactory(rating=4)
        MemberFeedbackFactory(rating=2)

        analytics = MembershipService.get_membership_analytics(start, timezone.now())

        self.assertEqual(analytics['members_by_tier']['PREMIUM'], 1)
        self.assertEqual(analytics['renewals'], 1)
        self.assertEqual(analytics['revenue'], Decimal('99'))
        self.assertEqual(analytics['feedback_stats']['total'], 2)
        self.assertEqual(analytics['feedback_stats']['average_rating'], 3)
        self.assertEqual(analytics['feedback_stats']['distribution'], {2: 1, 4: 1})
        self.assertGreaterEqual(analytics['new_memberships'], 2)

    def test_create_membership_tiers_is_idempotent(self):
        self.assertEqual(MembershipService.create_membership_tiers(), (4, 0))
        self.assertEqual(MembershipService.create_membership_tiers(), (0, 4))

        lifetime = MembershipTier.objects.get(name='LIFETIME')
        self.assertIsNone(lifetime.duration_months)
        self.assertEqual(lifetime.price, Decimal('999'))
