"""
Serializers validating notification payloads and templates.
"""
from django.core.serializers.json import DjangoJSONEncoder
from rest_framework import serializers

from ..models import Notification, NotificationTemplate


class NotificationPayloadSerializer(serializers.Serializer):
    """Payload accepted by NotificationService.send"""
    user_id = serializers.IntegerField()
    type = serializers.ChoiceField(choices=Notification.TYPE_CHOICES)
    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    data = serializers.JSONField(required=False, default=dict, encoder=DjangoJSONEncoder)
    channel = serializers.ChoiceField(choices=Notification.CHANNEL_CHOICES, default=Notification.IN_APP)
    priority = serializers.ChoiceField(choices=Notification.PRIORITY_CHOICES, default='NORMAL')
    scheduled_for = serializers.DateTimeField(required=False, allow_null=True)

    def validate_data(self, value):
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise serializers.ValidationError('data must be an object')
        return value


class NotificationTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationTemplate
        fields = ['id', 'name', 'type', 'subject', 'template', 'is_active']
        read_only_fields = ['id']
