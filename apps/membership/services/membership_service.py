"""
Membership service for tier upgrades, renewals, expiry notices and feedback.
"""
import logging
import math
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Avg, Count, Sum
from django.utils import timezone

from apps.common.exceptions import ConflictError, NotFoundError, validate_payload
from apps.common.services import AuditService
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService
from apps.payments.models import PaymentTransaction
from apps.payments.services import PaymentService

from ..exceptions import InvalidTierError, NonRenewableTierError, TierDowngradeError
from ..models import MemberFeedback, MembershipRenewal, MembershipTier
from ..promotions import apply_promo
from ..serializers import (
    FeedbackProcessSerializer,
    FeedbackSubmitSerializer,
    MembershipRenewalSerializer,
    RenewalRequestSerializer,
    UpgradeRequestSerializer,
)
from ..tiers import get_tier, get_tier_table, tier_ordinal

logger = logging.getLogger(__name__)

User = get_user_model()

# Months are counted as 30 days for expiry arithmetic
DAYS_PER_MONTH = 30


def _get_user(user_id):
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFoundError('User not found')


def _add_months(start, months):
    return start + timedelta(days=months * DAYS_PER_MONTH)


class MembershipService:
    """Service class for membership operations"""

    @staticmethod
    def get_membership_status(user_id):
        user = _get_user(user_id)
        now = timezone.now()
        expires_at = user.membership_expires_at

        days_until_expiry = None
        if expires_at is not None:
            days_until_expiry = math.ceil((expires_at - now).total_seconds() / 86400)

        tier = get_tier(user.member_type)
        return {
            'user_id': user.id,
            'member_type': user.member_type,
            'member_since': user.member_since,
            'expires_at': expires_at,
            'is_expired': expires_at is not None and expires_at < now,
            'days_until_expiry': days_until_expiry,
            'is_active': user.is_active,
            'benefits': list(tier.benefits) if tier else [],
        }

    @staticmethod
    def upgrade_membership(user_id, target_tier, promo_code=None, payment_method_id=None):
        """
        Move a user to a strictly higher tier.

        Charges the (optionally discounted) tier price when it is above zero,
        records a MembershipRenewal and notifies the user by email.
        """
        data = validate_payload(UpgradeRequestSerializer, {
            'target_tier': target_tier,
            'promo_code': promo_code,
            'payment_method_id': payment_method_id,
        })
        user = _get_user(user_id)

        tier = get_tier(data['target_tier'])
        if tier is None:
            raise InvalidTierError(f"Invalid membership tier: {target_tier}")

        old_tier = user.member_type
        if tier_ordinal(tier.name) <= tier_ordinal(old_tier):
            raise TierDowngradeError()

        amount = apply_promo(tier.price, data.get('promo_code'), user)

        payment = None
        if amount > 0:
            payment = PaymentService.process_payment(
                user_id=user.id,
                amount=amount,
                description=f"Membership upgrade to {tier.name}",
                payment_method_id=data.get('payment_method_id'),
                membership_tier=tier.name,
            )
        payment_id = str(payment.id) if payment is not None else None

        now = timezone.now()
        expires_at = _add_months(now, tier.duration_months) if tier.is_expiring else None

        with transaction.atomic():
            user.member_type = tier.name
            user.membership_expires_at = expires_at
            user.save(update_fields=['member_type', 'membership_expires_at', 'updated_at'])

            renewal = MembershipRenewal.objects.create(
                user=user,
                old_tier=old_tier,
                new_tier=tier.name,
                renewal_date=now,
                expires_at=expires_at,
                amount_paid=amount,
                payment_id=payment_id or '',
            )

        AuditService.log(
            action='MEMBERSHIP_UPGRADED',
            resource='memberships',
            user_id=user.id,
            resource_id=str(user.id),
            old_data={'member_type': old_tier},
            new_data={'member_type': tier.name, 'expires_at': expires_at, 'amount_paid': amount},
        )

        NotificationService.send({
            'user_id': user.id,
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Membership Upgraded Successfully',
            'message': f"Your membership has been upgraded to {tier.name}. Welcome to your new benefits!",
            'data': {'old_tier': old_tier, 'new_tier': tier.name, 'expires_at': expires_at},
            'channel': Notification.EMAIL,
        })

        logger.info(f"User {user.id} upgraded from {old_tier} to {tier.name}")
        return {
            'renewal_id': renewal.id,
            'old_tier': old_tier,
            'new_tier': tier.name,
            'expires_at': expires_at,
            'amount_paid': amount,
            'payment_id': payment_id,
        }

    @staticmethod
    def renew_membership(user_id, months=12, payment_method_id=None, auto_renew=False):
        """Extend the current tier from the later of the current expiry and now"""
        data = validate_payload(RenewalRequestSerializer, {
            'months': months,
            'payment_method_id': payment_method_id,
            'auto_renew': auto_renew,
        })
        months = data['months']
        user = _get_user(user_id)

        tier = get_tier(user.member_type)
        if tier is None:
            raise InvalidTierError(f"Invalid membership tier: {user.member_type}")
        if not tier.is_expiring:
            raise NonRenewableTierError()

        monthly_rate = tier.price / (tier.duration_months or 12)
        amount = (monthly_rate * months).quantize(Decimal('0.01'))

        payment = None
        if amount > 0:
            payment = PaymentService.process_payment(
                user_id=user.id,
                amount=amount,
                description=f"Membership renewal ({months} months)",
                payment_method_id=data.get('payment_method_id'),
                membership_tier=tier.name,
            )
        payment_id = str(payment.id) if payment is not None else None

        now = timezone.now()
        old_expires_at = user.membership_expires_at
        start = max(old_expires_at, now) if old_expires_at else now
        expires_at = _add_months(start, months)

        with transaction.atomic():
            user.membership_expires_at = expires_at
            user.save(update_fields=['membership_expires_at', 'updated_at'])

            renewal = MembershipRenewal.objects.create(
                user=user,
                old_tier=tier.name,
                new_tier=tier.name,
                renewal_date=now,
                expires_at=expires_at,
                amount_paid=amount,
                payment_id=payment_id or '',
                auto_renew=data['auto_renew'],
            )

        AuditService.log(
            action='MEMBERSHIP_RENEWED',
            resource='memberships',
            user_id=user.id,
            resource_id=str(user.id),
            old_data={'expires_at': old_expires_at},
            new_data={'expires_at': expires_at, 'months': months, 'amount_paid': amount},
        )

        NotificationService.send({
            'user_id': user.id,
            'type': Notification.PAYMENT_SUCCESS,
            'title': 'Membership Renewed Successfully',
            'message': f"Your membership has been renewed until {timezone.localtime(expires_at):%B %d, %Y}.",
            'data': {'expires_at': expires_at, 'amount_paid': amount},
            'channel': Notification.EMAIL,
        })

        return {
            'renewal_id': renewal.id,
            'tier': tier.name,
            'months': months,
            'expires_at': expires_at,
            'amount_paid': amount,
            'payment_id': payment_id,
        }

    @staticmethod
    def check_expiring_memberships():
        """
        Send one expiry notice per user for each configured lookahead band.

        A band of N days matches memberships expiring after now+(N-1) days and
        no later than now+N days, the members whose status shows N days left.
        Users already sent the same notice today are skipped, so the check can
        be re-run safely.
        """
        now = timezone.now()
        today_start = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
        summary = {'notified': {}, 'skipped': 0, 'failed': 0}

        for days in settings.MEMBERSHIP_EXPIRY_NOTICE_DAYS:
            band_end = now + timedelta(days=days)
            users = User.objects.filter(
                is_active=True,
                membership_expires_at__gt=band_end - timedelta(days=1),
                membership_expires_at__lte=band_end,
            ).exclude(member_type=User.LIFETIME)

            already_notified = set(
                Notification.objects.filter(
                    type=Notification.MEMBERSHIP_EXPIRY,
                    data__days_left=days,
                    created_at__gte=today_start,
                ).values_list('user_id', flat=True)
            )

            notified = 0
            for user in users:
                if user.id in already_notified:
                    summary['skipped'] += 1
                    continue
                result = NotificationService.on_membership_expiring(user.id, days)
                # The in-app row exists even when email delivery degraded
                if result.ok or 'notification_id' in result.details:
                    notified += 1
                else:
                    summary['failed'] += 1
            summary['notified'][days] = notified

        logger.info(f"Expiry check complete: {summary}")
        return summary

    @staticmethod
    def suspend_membership(user_id, reason, admin_user_id):
        user = _get_user(user_id)
        updated = User.objects.filter(pk=user.id, is_active=True).update(is_active=False)
        if not updated:
            raise ConflictError('Membership is already suspended')

        AuditService.log(
            action='MEMBERSHIP_SUSPENDED',
            resource='users',
            user_id=admin_user_id,
            resource_id=str(user.id),
            old_data={'is_active': True},
            new_data={'is_active': False, 'reason': reason},
        )

        NotificationService.send({
            'user_id': user.id,
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Membership Suspended',
            'message': f"Your membership has been suspended. Reason: {reason}",
            'channel': Notification.EMAIL,
            'priority': 'HIGH',
        })
        return {'user_id': user.id, 'is_active': False, 'reason': reason}

    @staticmethod
    def reactivate_membership(user_id, admin_user_id):
        user = _get_user(user_id)
        updated = User.objects.filter(pk=user.id, is_active=False).update(is_active=True)
        if not updated:
            raise ConflictError('Membership is already active')

        AuditService.log(
            action='MEMBERSHIP_REACTIVATED',
            resource='users',
            user_id=admin_user_id,
            resource_id=str(user.id),
            old_data={'is_active': False},
            new_data={'is_active': True},
        )

        NotificationService.send({
            'user_id': user.id,
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Membership Reactivated',
            'message': 'Your membership has been reactivated. Welcome back!',
            'channel': Notification.EMAIL,
        })
        return {'user_id': user.id, 'is_active': True}

    @staticmethod
    def submit_feedback(user_id, type, rating, subject, message, category='', anonymous=False):
        data = validate_payload(FeedbackSubmitSerializer, {
            'type': type,
            'rating': rating,
            'subject': subject,
            'message': message,
            'category': category or '',
            'anonymous': anonymous,
        })
        anonymous = data.pop('anonymous')
        submitter_id = None if anonymous else user_id

        feedback = MemberFeedback.objects.create(user_id=submitter_id, **data)

        AuditService.log(
            action='FEEDBACK_SUBMITTED',
            resource='feedback',
            user_id=submitter_id,
            resource_id=str(feedback.id),
            new_data={'type': feedback.type, 'rating': feedback.rating, 'anonymous': anonymous},
        )

        NotificationService.send_to_role('ADMIN', {
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'New Member Feedback Received',
            'message': (
                f"New {feedback.type.lower()} feedback received with rating: {feedback.rating}/5"
            ),
            'data': {'feedback_id': feedback.id, 'type': feedback.type, 'rating': feedback.rating},
        })

        return {'feedback_id': feedback.id, 'message': 'Feedback submitted successfully'}

    @staticmethod
    def process_feedback(feedback_id, status, response=None, admin_user_id=None):
        data = validate_payload(FeedbackProcessSerializer, {'status': status, 'response': response})

        try:
            feedback = MemberFeedback.objects.get(pk=feedback_id)
        except MemberFeedback.DoesNotExist:
            raise NotFoundError('Feedback not found')

        old_status = feedback.status
        feedback.status = data['status']
        feedback.response = data.get('response') or ''
        feedback.processed_at = timezone.now()
        feedback.processed_by_id = admin_user_id
        feedback.save()

        if feedback.user_id and feedback.response:
            NotificationService.send({
                'user_id': feedback.user_id,
                'type': Notification.MESSAGE_RECEIVED,
                'title': 'Feedback Response',
                'message': (
                    'Thank you for your feedback. We have reviewed your submission '
                    'and provided a response.'
                ),
                'data': {'feedback_id': feedback.id, 'original_feedback': feedback.subject,
                         'response': feedback.response},
            })

        AuditService.log(
            action='FEEDBACK_PROCESSED',
            resource='feedback',
            user_id=admin_user_id,
            resource_id=str(feedback.id),
            old_data={'status': old_status},
            new_data={'status': feedback.status, 'has_response': bool(feedback.response)},
        )
        return feedback

    @staticmethod
    def get_membership_analytics(start_date, end_date):
        active_members = User.objects.filter(is_active=True)
        members_by_tier = {
            row['member_type']: row['count']
            for row in active_members.values('member_type').annotate(count=Count('id')).order_by()
        }

        revenue = PaymentTransaction.objects.filter(
            status=PaymentTransaction.COMPLETED,
            membership_tier__isnull=False,
            created_at__gte=start_date,
            created_at__lte=end_date,
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0')

        feedback = MemberFeedback.objects.filter(submitted_at__gte=start_date, submitted_at__lte=end_date)
        distribution = {
            row['rating']: row['count']
            for row in feedback.values('rating').annotate(count=Count('id')).order_by('rating')
        }
        average_rating = feedback.aggregate(avg=Avg('rating'))['avg']

        return {
            'total_members': active_members.count(),
            'members_by_tier': members_by_tier,
            'new_memberships': User.objects.filter(
                member_since__gte=start_date, member_since__lte=end_date
            ).count(),
            'renewals': MembershipRenewal.objects.filter(
                renewal_date__gte=start_date, renewal_date__lte=end_date
            ).count(),
            'revenue': revenue,
            'feedback_stats': {
                'total': sum(distribution.values()),
                'average_rating': round(average_rating, 2) if average_rating is not None else 0,
                'distribution': distribution,
            },
        }

    @staticmethod
    def create_membership_tiers():
        """Upsert the configured tier table; returns (created, updated) counts"""
        created_count = 0
        updated_count = 0
        for tier in get_tier_table().values():
            _, created = MembershipTier.objects.update_or_create(
                name=tier.name,
                defaults={
                    'description': tier.description,
                    'price': tier.price,
                    'duration_months': tier.duration_months,
                    'benefits': list(tier.benefits),
                    'is_active': True,
                },
            )
            if created:
                created_count += 1
            else:
                updated_count += 1
        return created_count, updated_count

    @staticmethod
    def get_renewal_history(user_id, limit=10):
        renewals = MembershipRenewal.objects.filter(user_id=user_id).order_by('-renewal_date', '-id')[:limit]
        return MembershipRenewalSerializer(renewals, many=True).data
