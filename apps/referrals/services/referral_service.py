"""
Referral service: codes, redemption, commissions and payouts.

Status transitions are conditional updates (update where status matches)
followed by a row-count check, so concurrent callers cannot both move the
same referral or payout forward.
"""
import logging
import re
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Case, Count, DecimalField, Sum, Value, When
from django.db.models.functions import TruncMonth
from django.utils import timezone
from django.utils.crypto import get_random_string

from apps.common.exceptions import NotFoundError, validate_payload
from apps.common.services import AuditService
from apps.notifications.models import Notification
from apps.notifications.services import NotificationService

from ..commissions import get_commission_rules, resolve_performance_tier
from ..exceptions import (
    InvalidReferralCodeError,
    PayoutError,
    ReferralCodeExistsError,
    ReferralCodeUsedError,
    ReferralStateError,
)
from ..models import CommissionPayout, CommissionRule, Referral
from ..serializers import (
    PayoutRequestSerializer,
    ReferralCodeSerializer,
    ReferralSaleSerializer,
    ReferralSerializer,
    TrackReferralSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

CODE_LENGTH = 8
CODE_CHARS = 'ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'

PROCESSING_DAYS = {
    'BANK_TRANSFER': 2,
    'PAYPAL': 1,
    'CHECK': 7,
}
DEFAULT_PROCESSING_DAYS = 3

ZERO = Decimal('0')


def mask_email(email):
    return re.sub(r'(.{2}).*(@.*)', r'\1***\2', email)


class ReferralService:
    """Service class for referral operations"""

    @staticmethod
    def initialize_commission_rules():
        """Upsert the configured commission rules; returns (created, updated) counts"""
        created_count = 0
        updated_count = 0
        for rule in get_commission_rules().values():
            _, created = CommissionRule.objects.update_or_create(
                tier_level=rule.tier_level,
                defaults={
                    'percentage': rule.percentage,
                    'flat_amount': rule.flat_amount,
                    'minimum_sale': rule.minimum_sale,
                    'is_active': True,
                },
            )
            if created:
                created_count += 1
            else:
                updated_count += 1
        return created_count, updated_count

    @staticmethod
    def generate_referral_code(user_id, custom_code=None):
        """
        Return the user's pending referral code, creating one if needed.

        While a PENDING code exists it is returned unchanged (created=False).
        """
        data = validate_payload(ReferralCodeSerializer, {'custom_code': custom_code})
        custom_code = data.get('custom_code')

        if not User.objects.filter(pk=user_id).exists():
            raise NotFoundError('User not found')

        existing = Referral.objects.filter(referrer_id=user_id, status=Referral.PENDING).first()
        if existing:
            return {'code': existing.code, 'referral_id': existing.id, 'created': False}

        if custom_code:
            if Referral.objects.filter(code=custom_code).exists():
                raise ReferralCodeExistsError()
            code = custom_code
        else:
            code = get_random_string(CODE_LENGTH, CODE_CHARS)
            while Referral.objects.filter(code=code).exists():
                code = get_random_string(CODE_LENGTH, CODE_CHARS)

        try:
            with transaction.atomic():
                referral = Referral.objects.create(referrer_id=user_id, code=code)
        except IntegrityError:
            raise ReferralCodeExistsError()

        AuditService.log(
            action='REFERRAL_CODE_GENERATED',
            resource='referrals',
            user_id=user_id,
            resource_id=str(referral.id),
            new_data={'code': code},
        )
        return {'code': code, 'referral_id': referral.id, 'created': True}

    @staticmethod
    def track_referral(code, email, metadata=None):
        """Redeem a PENDING code exactly once"""
        data = validate_payload(TrackReferralSerializer, {
            'code': code,
            'email': email,
            'metadata': metadata or {},
        })

        referral = Referral.objects.select_related('referrer').filter(code=data['code']).first()
        if referral is None:
            raise InvalidReferralCodeError()

        updated = Referral.objects.filter(pk=referral.pk, status=Referral.PENDING).update(
            email=data['email'],
            status=Referral.CONFIRMED,
            metadata=data['metadata'],
        )
        if not updated:
            raise ReferralCodeUsedError()

        AuditService.log(
            action='REFERRAL_TRACKED',
            resource='referrals',
            resource_id=str(referral.id),
            new_data={'email': data['email'], 'metadata': data['metadata']},
        )

        NotificationService.send({
            'user_id': referral.referrer_id,
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Referral Tracked',
            'message': (
                'Someone has used your referral code! They will need to complete '
                'a purchase for you to earn a commission.'
            ),
            'channel': Notification.EMAIL,
            'data': {'referral_code': referral.code, 'email': mask_email(data['email'])},
        })

        referrer = referral.referrer
        return {
            'referral_id': referral.id,
            'referrer_name': f"{referrer.first_name} {referrer.last_name}".strip() or referrer.username,
            'discount': settings.REFERRAL_DISCOUNT_PERCENT,
        }

    @staticmethod
    def get_referrer_tier_level(referrer_id):
        stats = Referral.objects.filter(referrer_id=referrer_id, status=Referral.PAID).aggregate(
            count=Count('id'), total=Sum('commission')
        )
        return resolve_performance_tier(stats['count'] or 0, stats['total'] or ZERO)

    @classmethod
    def process_referral_sale(cls, referral_id, sale_amount, product_type):
        """
        Pay the commission for a confirmed referral's sale.

        Returns None without changing anything when no active rule exists for
        the referrer's tier or the sale is below the rule's minimum.
        """
        data = validate_payload(ReferralSaleSerializer, {
            'sale_amount': sale_amount,
            'product_type': product_type,
        })
        sale_amount = data['sale_amount']

        try:
            referral = Referral.objects.get(pk=referral_id)
        except Referral.DoesNotExist:
            raise NotFoundError('Referral not found')

        if referral.status == Referral.PAID:
            raise ReferralStateError('Commission has already been processed for this referral')
        if referral.status != Referral.CONFIRMED:
            raise ReferralStateError('Referral code has not been redeemed')

        tier_level = cls.get_referrer_tier_level(referral.referrer_id)
        rule = CommissionRule.objects.filter(tier_level=tier_level, is_active=True).first()
        if rule is None:
            logger.warning(f"No commission rule found for tier {tier_level}")
            return None

        if sale_amount < rule.minimum_sale:
            logger.info(f"Sale amount {sale_amount} below minimum {rule.minimum_sale} for referral {referral.id}")
            return None

        commission = rule.calculate(sale_amount).quantize(Decimal('0.01'))

        updated = Referral.objects.filter(pk=referral.pk, status=Referral.CONFIRMED).update(
            status=Referral.PAID,
            commission=commission,
        )
        if not updated:
            raise ReferralStateError('Commission has already been processed for this referral')

        AuditService.log(
            action='COMMISSION_EARNED',
            resource='referrals',
            user_id=referral.referrer_id,
            resource_id=str(referral.id),
            new_data={
                'sale_amount': sale_amount,
                'commission': commission,
                'tier_level': tier_level,
                'product_type': data['product_type'],
            },
        )

        NotificationService.send({
            'user_id': referral.referrer_id,
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Commission Earned!',
            'message': f"Congratulations! You've earned ${commission:.2f} in commission from your referral.",
            'channel': Notification.EMAIL,
            'data': {'commission': commission, 'sale_amount': sale_amount, 'referral_code': referral.code},
        })

        return {'referral_id': referral.id, 'commission': commission, 'tier_level': tier_level}

    @staticmethod
    def get_processing_days(payment_method):
        return PROCESSING_DAYS.get(payment_method, DEFAULT_PROCESSING_DAYS)

    @classmethod
    def request_payout(cls, referrer_id, commission_ids, payment_method, payment_details=None):
        data = validate_payload(PayoutRequestSerializer, {
            'commission_ids': commission_ids,
            'payment_method': payment_method,
            'payment_details': payment_details or {},
        })
        commission_ids = data['commission_ids']

        # Paid commissions not yet paid out and not held by an open or approved payout
        commissions = list(
            Referral.objects.filter(
                id__in=commission_ids,
                referrer_id=referrer_id,
                status=Referral.PAID,
                paid_at__isnull=True,
            ).exclude(
                payouts__status__in=[CommissionPayout.PENDING, CommissionPayout.APPROVED]
            )
        )
        if len(commissions) != len(commission_ids):
            raise PayoutError('Invalid or already paid commissions')

        total_amount = sum((c.commission for c in commissions), ZERO)
        minimum = Decimal(str(settings.REFERRAL_PAYOUT_MINIMUM))
        if total_amount < minimum:
            raise PayoutError(f"Minimum payout amount is ${minimum}")

        with transaction.atomic():
            payout = CommissionPayout.objects.create(
                referrer_id=referrer_id,
                amount=total_amount,
                payment_method=data['payment_method'],
                payment_details=data['payment_details'],
            )
            payout.commissions.set(commissions)

        AuditService.log(
            action='PAYOUT_REQUESTED',
            resource='commission_payouts',
            user_id=referrer_id,
            resource_id=str(payout.id),
            new_data={
                'amount': total_amount,
                'commission_count': len(commissions),
                'payment_method': payout.payment_method,
            },
        )

        NotificationService.send_to_role('ADMIN', {
            'type': Notification.SYSTEM_ANNOUNCEMENT,
            'title': 'Commission Payout Requested',
            'message': f"Commission payout of ${total_amount:.2f} requested by user {referrer_id}",
            'data': {'payout_id': payout.id, 'amount': total_amount, 'referrer_id': referrer_id},
        })

        return {
            'payout_id': payout.id,
            'amount': total_amount,
            'status': payout.status,
            'estimated_processing_days': cls.get_processing_days(payout.payment_method),
        }

    @classmethod
    def process_payout(cls, payout_id, admin_user_id, approved, notes=None):
        try:
            payout = CommissionPayout.objects.get(pk=payout_id)
        except CommissionPayout.DoesNotExist:
            raise NotFoundError('Payout not found')

        new_status = CommissionPayout.APPROVED if approved else CommissionPayout.REJECTED
        now = timezone.now()

        with transaction.atomic():
            updated = CommissionPayout.objects.filter(pk=payout.pk, status=CommissionPayout.PENDING).update(
                status=new_status,
                processed_at=now,
                processed_by_id=admin_user_id,
                notes=notes or '',
            )
            if not updated:
                raise ReferralStateError('Payout already processed')

            if approved:
                payout.commissions.filter(paid_at__isnull=True).update(paid_at=now)

        payout.refresh_from_db()
        if approved:
            cls._process_actual_payout(payout)

        AuditService.log(
            action=f"PAYOUT_{new_status}",
            resource='commission_payouts',
            user_id=admin_user_id,
            resource_id=str(payout.id),
            new_data={'approved': approved, 'notes': notes},
        )

        if approved:
            title = 'Commission Payout Approved'
            message = f"Your commission payout of ${payout.amount:.2f} has been approved and is being processed."
        else:
            title = 'Commission Payout Rejected'
            message = f"Your commission payout request has been rejected. {notes or ''}".strip()

        NotificationService.send({
            'user_id': payout.referrer_id,
            'type': Notification.PAYMENT_SUCCESS if approved else Notification.SYSTEM_ANNOUNCEMENT,
            'title': title,
            'message': message,
            'channel': Notification.EMAIL,
            'data': {'payout_id': payout.id, 'amount': payout.amount, 'approved': approved, 'notes': notes},
        })

        return {'payout_id': payout.id, 'status': new_status, 'processed_at': now}

    @staticmethod
    def _process_actual_payout(payout):
        # Funds transfer happens outside this system; record the hand-off only
        logger.info(f"Processing payout {payout.id}: ${payout.amount} via {payout.payment_method}")

    @staticmethod
    def get_referral_stats(user_id):
        referrals = Referral.objects.filter(referrer_id=user_id)
        total = referrals.count()
        confirmed = referrals.filter(status__in=[Referral.CONFIRMED, Referral.PAID]).count()
        paid = referrals.filter(status=Referral.PAID)

        return {
            'total_referrals': total,
            'confirmed_referrals': confirmed,
            'conversion_rate': (confirmed / total) * 100 if total else 0,
            'total_earnings': paid.aggregate(total=Sum('commission'))['total'] or ZERO,
            'pending_earnings': paid.filter(paid_at__isnull=True).aggregate(total=Sum('commission'))['total'] or ZERO,
            'recent_referrals': ReferralSerializer(referrals.order_by('-created_at')[:10], many=True).data,
        }

    @staticmethod
    def get_referral_analytics(start_date, end_date):
        referrals = Referral.objects.filter(created_at__gte=start_date, created_at__lte=end_date)
        total = referrals.count()

        status_counts = {
            row['status']: row['count']
            for row in referrals.values('status').annotate(count=Count('id')).order_by()
        }
        converted = status_counts.get(Referral.CONFIRMED, 0) + status_counts.get(Referral.PAID, 0)

        paid = referrals.filter(status=Referral.PAID)
        top_referrers = list(
            paid.values('referrer_id', 'referrer__email')
            .annotate(total_commission=Sum('commission'), referral_count=Count('id'))
            .order_by('-total_commission')[:10]
        )

        paid_commission = Case(
            When(status=Referral.PAID, then='commission'),
            default=Value(ZERO),
            output_field=DecimalField(max_digits=12, decimal_places=2),
        )
        monthly_trend = list(
            referrals.annotate(month=TruncMonth('created_at'))
            .values('month')
            .annotate(referral_count=Count('id'), total_commission=Sum(paid_commission))
            .order_by('month')
        )

        return {
            'total_referrals': total,
            'conversion_rate': (converted / total) * 100 if total else 0,
            'total_commissions': paid.aggregate(total=Sum('commission'))['total'] or ZERO,
            'status_breakdown': [
                {'status': status, 'count': count} for status, count in sorted(status_counts.items())
            ],
            'pending_payouts': CommissionPayout.objects.filter(
                status=CommissionPayout.PENDING, requested_at__gte=start_date, requested_at__lte=end_date
            ).count(),
            'top_referrers': top_referrers,
            'monthly_trend': monthly_trend,
        }
