"""
Serializers validating membership operation payloads.
"""
from rest_framework import serializers

from ..models import MemberFeedback, MembershipRenewal, MembershipTier


class UpgradeRequestSerializer(serializers.Serializer):
    target_tier = serializers.CharField(max_length=20)
    promo_code = serializers.CharField(max_length=50, required=False, allow_blank=True, allow_null=True)
    payment_method_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)


class RenewalRequestSerializer(serializers.Serializer):
    months = serializers.IntegerField(min_value=1, max_value=120, default=12)
    payment_method_id = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    auto_renew = serializers.BooleanField(default=False)


class FeedbackSubmitSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=MemberFeedback.TYPE_CHOICES)
    rating = serializers.IntegerField(min_value=1, max_value=5)
    subject = serializers.CharField(max_length=200)
    message = serializers.CharField()
    category = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    anonymous = serializers.BooleanField(default=False)


class FeedbackProcessSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        (MemberFeedback.REVIEWED, 'Reviewed'),
        (MemberFeedback.RESOLVED, 'Resolved'),
        (MemberFeedback.DISMISSED, 'Dismissed'),
    ])
    response = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class MembershipTierSerializer(serializers.ModelSerializer):
    class Meta:
        model = MembershipTier
        fields = ['id', 'name', 'description', 'price', 'duration_months', 'benefits', 'is_active']


class MembershipRenewalSerializer(serializers.ModelSerializer):
    class Meta:
        model = MembershipRenewal
        fields = [
            'id', 'old_tier', 'new_tier', 'renewal_date', 'expires_at',
            'amount_paid', 'payment_id', 'auto_renew', 'status',
        ]
