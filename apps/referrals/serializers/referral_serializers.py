"""
Serializers validating referral operation payloads.
"""
from decimal import Decimal

from rest_framework import serializers

from ..models import CommissionPayout, Referral


class ReferralCodeSerializer(serializers.Serializer):
    custom_code = serializers.RegexField(
        r'^[A-Za-z0-9]{4,20}$', required=False, allow_null=True,
        error_messages={'invalid': 'Referral codes are 4-20 letters or digits'},
    )


class TrackReferralSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
    email = serializers.EmailField()
    metadata = serializers.DictField(required=False, default=dict)


class ReferralSaleSerializer(serializers.Serializer):
    sale_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0'))
    product_type = serializers.CharField(max_length=50)


class PayoutRequestSerializer(serializers.Serializer):
    commission_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    payment_method = serializers.ChoiceField(choices=CommissionPayout.PAYMENT_METHOD_CHOICES)
    payment_details = serializers.DictField(required=False, default=dict)

    def validate_commission_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError('Duplicate commission ids')
        return value


class ReferralSerializer(serializers.ModelSerializer):
    class Meta:
        model = Referral
        fields = ['id', 'code', 'email', 'status', 'commission', 'created_at', 'paid_at']
