"""
Tests for referral codes, commissions and payouts.
"""
import re
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone
from hypothesis import given, settings, strategies as st
from hypothesis.extra.django import TestCase as HypothesisTestCase

from apps.common.exceptions import NotFoundError
from apps.common.models import AuditLog
from apps.notifications.models import Notification
from apps.payments.models import PaymentTransaction
from apps.referrals.commissions import resolve_performance_tier
from apps.referrals.exceptions import (
    InvalidReferralCodeError,
    PayoutError,
    ReferralCodeExistsError,
    ReferralCodeUsedError,
    ReferralStateError,
)
from apps.referrals.models import CommissionPayout, CommissionRule, Referral
from apps.referrals.services import ReferralService
from apps.referrals.services.referral_service import mask_email
from tests.factories import AdminUserFactory, PaidReferralFactory, ReferralFactory, UserFactory


def seed_commission_rules():
    ReferralService.initialize_commission_rules()


class TestReferralCodes(TestCase):

    def setUp(self):
        self.user = UserFactory()

    def test_generated_code_format(self):
        result = ReferralService.generate_referral_code(self.user.id)

        self.assertTrue(result['created'])
        self.assertRegex(result['code'], r'^[A-Z0-9]{8}$')
        self.assertTrue(AuditLog.objects.filter(action='REFERRAL_CODE_GENERATED').exists())

    def test_pending_code_is_reused(self):
        first = ReferralService.generate_referral_code(self.user.id)
        second = ReferralService.generate_referral_code(self.user.id)

        self.assertEqual(first['code'], second['code'])
        self.assertFalse(second['created'])
        self.assertEqual(Referral.objects.filter(referrer=self.user).count(), 1)

    def test_new_code_after_pending_one_is_used(self):
        first = ReferralService.generate_referral_code(self.user.id)
        ReferralService.track_referral(first['code'], 'friend@example.com')

        second = ReferralService.generate_referral_code(self.user.id)

        self.assertTrue(second['created'])
        self.assertNotEqual(first['code'], second['code'])

    def test_custom_code(self):
        result = ReferralService.generate_referral_code(self.user.id, custom_code='BUILD2024')
        self.assertEqual(result['code'], 'BUILD2024')

    def test_duplicate_custom_code(self):
        ReferralFactory(code='TAKEN123')
        with self.assertRaises(ReferralCodeExistsError):
            ReferralService.generate_referral_code(self.user.id, custom_code='TAKEN123')

    def test_unknown_user(self):
        with self.assertRaises(NotFoundError):
            ReferralService.generate_referral_code(999999)


class TestTrackReferral(TestCase):

    def setUp(self):
        self.referrer = UserFactory(first_name='Ada', last_name='Byron')
        self.referral = ReferralFactory(referrer=self.referrer, code='ABC12345')

    def test_redeem_pending_code(self):
        result = ReferralService.track_referral('ABC12345', 'alice@example.com', {'source': 'newsletter'})

        self.assertEqual(result['referral_id'], self.referral.id)
        self.assertEqual(result['referrer_name'], 'Ada Byron')
        self.assertEqual(result['discount'], 10)
        self.referral.refresh_from_db()
        self.assertEqual(self.referral.status, Referral.CONFIRMED)
        self.assertEqual(self.referral.email, 'alice@example.com')

        notification = Notification.objects.get(user=self.referrer)
        self.assertEqual(notification.title, 'Referral Tracked')
        self.assertEqual(notification.data['email'], 'al***@example.com')

    def test_code_can_only_be_used_once(self):
        ReferralService.track_referral('ABC12345', 'alice@example.com')

        with self.assertRaisesMessage(ReferralCodeUsedError, 'already been used'):
            ReferralService.track_referral('ABC12345', 'bob@example.com')

        self.referral.refresh_from_db()
        self.assertEqual(self.referral.email, 'alice@example.com')

    def test_paid_code_cannot_be_used(self):
        PaidReferralFactory(code='PAID0001')
        with self.assertRaises(ReferralCodeUsedError):
            ReferralService.track_referral('PAID0001', 'bob@example.com')

    def test_unknown_code(self):
        with self.assertRaisesMessage(InvalidReferralCodeError, 'Invalid referral code'):
            ReferralService.track_referral('NOPE0000', 'bob@example.com')

    def test_mask_email(self):
        self.assertEqual(mask_email('jonathan@example.org'), 'jo***@example.org')


class TestReferralSale(TestCase):

    def setUp(self):
        seed_commission_rules()
        self.referrer = UserFactory()

    def test_sale_below_minimum_is_a_no_op(self):
        referral = ReferralFactory(referrer=self.referrer, code='ABC12345')
        ReferralService.track_referral('ABC12345', 'a@b.com')

        result = ReferralService.process_referral_sale(referral.id, Decimal('40'), 'MEMBERSHIP')

        self.assertIsNone(result)
        referral.refresh_from_db()
        self.assertEqual(referral.status, Referral.CONFIRMED)
        self.assertEqual(referral.commission, Decimal('0'))
        self.assertEqual(PaymentTransaction.objects.count(), 0)
        self.assertFalse(AuditLog.objects.filter(action='COMMISSION_EARNED').exists())

    def test_tier_one_commission(self):
        referral = ReferralFactory(referrer=self.referrer, status=Referral.CONFIRMED, email='a@b.com')

        result = ReferralService.process_referral_sale(referral.id, Decimal('100'), 'MEMBERSHIP')

        self.assertEqual(result['tier_level'], 'TIER_1')
        self.assertEqual(result['commission'], Decimal('10.00'))
        referral.refresh_from_db()
        self.assertEqual(referral.status, Referral.PAID)
        self.assertEqual(referral.commission, Decimal('10.00'))
        self.assertTrue(Notification.objects.filter(user=self.referrer, title='Commission Earned!').exists())

    def test_tier_two_commission(self):
        PaidReferralFactory.create_batch(5, referrer=self.referrer, commission=Decimal('40.00'))
        referral = ReferralFactory(referrer=self.referrer, status=Referral.CONFIRMED, email='a@b.com')

        result = ReferralService.process_referral_sale(referral.id, Decimal('100'), 'EVENT')

        self.assertEqual(result['tier_level'], 'TIER_2')
        self.assertEqual(result['commission'], Decimal('20.00'))

    def test_paid_referral_cannot_be_processed_again(self):
        referral = ReferralFactory(referrer=self.referrer, status=Referral.CONFIRMED, email='a@b.com')
        ReferralService.process_referral_sale(referral.id, Decimal('100'), 'MEMBERSHIP')

        with self.assertRaises(ReferralStateError):
            ReferralService.process_referral_sale(referral.id, Decimal('500'), 'MEMBERSHIP')

        referral.refresh_from_db()
        self.assertEqual(referral.commission, Decimal('10.00'))

    def test_unredeemed_referral_is_rejected(self):
        referral = ReferralFactory(referrer=self.referrer)
        with self.assertRaises(ReferralStateError):
            ReferralService.process_referral_sale(referral.id, Decimal('100'), 'MEMBERSHIP')

    def test_missing_rule_is_a_no_op(self):
        CommissionRule.objects.filter(tier_level='TIER_1').update(is_active=False)
        referral = ReferralFactory(referrer=self.referrer, status=Referral.CONFIRMED, email='a@b.com')

        self.assertIsNone(ReferralService.process_referral_sale(referral.id, Decimal('100'), 'MEMBERSHIP'))
        referral.refresh_from_db()
        self.assertEqual(referral.status, Referral.CONFIRMED)

    def test_performance_tiers(self):
        self.assertEqual(resolve_performance_tier(10, Decimal('500')), 'TIER_3')
        self.assertEqual(resolve_performance_tier(10, Decimal('499.99')), 'TIER_2')
        self.assertEqual(resolve_performance_tier(5, Decimal('200')), 'TIER_2')
        self.assertEqual(resolve_performance_tier(4, Decimal('1000')), 'TIER_1')

    @override_settings(COMMISSION_RULES={
        'TIER_1': {'percentage': '5', 'flat_amount': '1', 'minimum_sale': '0'},
    })
    def test_rules_follow_settings(self):
        CommissionRule.objects.all().delete()
        seed_commission_rules()

        rule = CommissionRule.objects.get()
        self.assertEqual(rule.percentage, Decimal('5'))
        self.assertEqual(rule.minimum_sale, Decimal('0'))


class TestSaleMinimumProperties(HypothesisTestCase):

    @given(sale_amount=st.decimals(min_value=Decimal('0'), max_value=Decimal('49.99'), places=2))
    @settings(max_examples=25, deadline=None)
    def test_sales_below_minimum_leave_referral_unchanged(self, sale_amount):
        seed_commission_rules()
        referral = ReferralFactory(status=Referral.CONFIRMED, email='a@b.com')

        self.assertIsNone(ReferralService.process_referral_sale(referral.id, sale_amount, 'MEMBERSHIP'))

        referral.refresh_from_db()
        self.assertEqual(referral.status, Referral.CONFIRMED)
        self.assertEqual(referral.commission, Decimal('0'))


class TestPayouts(TestCase):

    def setUp(self):
        self.referrer = UserFactory()
        self.admin = AdminUserFactory()

    def paid(self, amount):
        return PaidReferralFactory(referrer=self.referrer, commission=Decimal(amount))

    def test_payout_below_minimum_fails(self):
        commissions = [self.paid('20.00'), self.paid('4.99')]

        with self.assertRaisesMessage(PayoutError, 'Minimum payout amount'):
            ReferralService.request_payout(self.referrer.id, [c.id for c in commissions], 'PAYPAL')

        self.assertFalse(CommissionPayout.objects.exists())

    def test_payout_at_minimum_succeeds(self):
        commissions = [self.paid('20.00'), self.paid('5.00')]

        result = ReferralService.request_payout(
            self.referrer.id, [c.id for c in commissions], 'BANK_TRANSFER', {'account_last4': '1234'}
        )

        self.assertEqual(result['amount'], Decimal('25.00'))
        self.assertEqual(result['status'], 'PENDING')
        self.assertEqual(result['estimated_processing_days'], 2)
        payout = CommissionPayout.objects.get(pk=result['payout_id'])
        self.assertEqual(set(payout.commissions.values_list('id', flat=True)), {c.id for c in commissions})
        self.assertTrue(Notification.objects.filter(user=self.admin, title='Commission Payout Requested').exists())
        self.assertTrue(AuditLog.objects.filter(action='PAYOUT_REQUESTED').exists())

    def test_processing_days(self):
        self.assertEqual(ReferralService.get_processing_days('PAYPAL'), 1)
        self.assertEqual(ReferralService.get_processing_days('CHECK'), 7)
        self.assertEqual(ReferralService.get_processing_days('WIRE'), 3)

    def test_commissions_must_belong_to_referrer(self):
        other = PaidReferralFactory(commission=Decimal('30.00'))
        with self.assertRaises(PayoutError):
            ReferralService.request_payout(self.referrer.id, [other.id], 'PAYPAL')

    def test_unpaid_commissions_are_rejected(self):
        confirmed = ReferralFactory(referrer=self.referrer, status=Referral.CONFIRMED, commission=Decimal('30'))
        with self.assertRaises(PayoutError):
            ReferralService.request_payout(self.referrer.id, [confirmed.id], 'PAYPAL')

    def test_commission_cannot_be_in_two_open_payouts(self):
        commission = self.paid('30.00')
        ReferralService.request_payout(self.referrer.id, [commission.id], 'PAYPAL')

        with self.assertRaises(PayoutError):
            ReferralService.request_payout(self.referrer.id, [commission.id], 'PAYPAL')

    def test_approve_payout_stamps_commissions(self):
        commission = self.paid('30.00')
        payout_id = ReferralService.request_payout(self.referrer.id, [commission.id], 'CHECK')['payout_id']

        result = ReferralService.process_payout(payout_id, self.admin.id, approved=True, notes='Batch 12')

        self.assertEqual(result['status'], 'APPROVED')
        commission.refresh_from_db()
        self.assertIsNotNone(commission.paid_at)
        payout = CommissionPayout.objects.get(pk=payout_id)
        self.assertEqual(payout.processed_by, self.admin)
        self.assertEqual(payout.notes, 'Batch 12')
        self.assertTrue(AuditLog.objects.filter(action='PAYOUT_APPROVED').exists())
        self.assertTrue(
            Notification.objects.filter(user=self.referrer, title='Commission Payout Approved').exists()
        )

        with self.assertRaises(PayoutError):
            ReferralService.request_payout(self.referrer.id, [commission.id], 'CHECK')

    def test_payout_is_processed_once(self):
        commission = self.paid('30.00')
        payout_id = ReferralService.request_payout(self.referrer.id, [commission.id], 'CHECK')['payout_id']
        ReferralService.process_payout(payout_id, self.admin.id, approved=True)

        with self.assertRaisesMessage(ReferralStateError, 'already processed'):
            ReferralService.process_payout(payout_id, self.admin.id, approved=False)

        self.assertEqual(CommissionPayout.objects.get(pk=payout_id).status, 'APPROVED')

    def test_rejected_commissions_can_be_requested_again(self):
        commission = self.paid('30.00')
        payout_id = ReferralService.request_payout(self.referrer.id, [commission.id], 'PAYPAL')['payout_id']

        ReferralService.process_payout(payout_id, self.admin.id, approved=False, notes='Missing tax form')

        commission.refresh_from_db()
        self.assertIsNone(commission.paid_at)
        rejection = Notification.objects.get(user=self.referrer, title='Commission Payout Rejected')
        self.assertIn('Missing tax form', rejection.message)
        self.assertTrue(ReferralService.request_payout(self.referrer.id, [commission.id], 'PAYPAL')['payout_id'])

    def test_missing_payout(self):
        with self.assertRaises(NotFoundError):
            ReferralService.process_payout(999999, self.admin.id, approved=True)


class TestReferralReporting(TestCase):

    def test_referral_stats(self):
        referrer = UserFactory()
        ReferralFactory(referrer=referrer)
        ReferralFactory(referrer=referrer, status=Referral.CONFIRMED)
        PaidReferralFactory(referrer=referrer, commission=Decimal('12.50'))
        PaidReferralFactory(referrer=referrer, commission=Decimal('7.50'), paid_at=timezone.now())

        stats = ReferralService.get_referral_stats(referrer.id)

        self.assertEqual(stats['total_referrals'], 4)
        self.assertEqual(stats['confirmed_referrals'], 3)
        self.assertEqual(stats['conversion_rate'], 75)
        self.assertEqual(stats['total_earnings'], Decimal('20.00'))
        self.assertEqual(stats['pending_earnings'], Decimal('12.50'))
        self.assertEqual(len(stats['recent_referrals']), 4)

    def test_referral_analytics(self):
        top = UserFactory()
        PaidReferralFactory.create_batch(2, referrer=top, commission=Decimal('15.00'))
        PaidReferralFactory(commission=Decimal('5.00'))
        ReferralFactory()
        start = timezone.now() - timedelta(days=1)

        analytics = ReferralService.get_referral_analytics(start, timezone.now())

        self.assertEqual(analytics['total_referrals'], 4)
        self.assertEqual(analytics['conversion_rate'], 75)
        self.assertEqual(analytics['total_commissions'], Decimal('35.00'))
        self.assertEqual(analytics['top_referrers'][0]['referrer_id'], top.id)
        self.assertEqual(analytics['top_referrers'][0]['total_commission'], Decimal('30.00'))
        self.assertEqual(
            analytics['status_breakdown'],
            [{'status': 'PAID', 'count': 3}, {'status': 'PENDING', 'count': 1}]
        )
        self.assertEqual(len(analytics['monthly_trend']), 1)
        self.assertEqual(analytics['monthly_trend'][0]['referral_count'], 4)
        self.assertEqual(analytics['monthly_trend'][0]['total_commission'], Decimal('35.00'))

    def test_commission_rule_seeding_is_idempotent(self):
        self.assertEqual(ReferralService.initialize_commission_rules(), (3, 0))
        self.assertEqual(ReferralService.initialize_commission_rules(), (0, 3))
        self.assertTrue(re.match(r'^TIER_\d$', CommissionRule.objects.first().tier_level))
