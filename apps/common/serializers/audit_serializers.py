"""
Audit log serializers used for JSON export and query validation.
"""
from rest_framework import serializers
from ..models import AuditLog


class AuditUserSerializer(serializers.Serializer):
    first_name = serializers.CharField(read_only=True)
    last_name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)


class AuditLogSerializer(serializers.ModelSerializer):
    user = AuditUserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'user', 'action', 'resource', 'resource_id', 'old_data',
            'new_data', 'metadata', 'ip_address', 'user_agent', 'timestamp'
        ]
        read_only_fields = fields


class AuditQuerySerializer(serializers.Serializer):
    """Filters accepted by AuditService.get_audit_logs"""
    user_id = serializers.IntegerField(required=False, allow_null=True)
    action = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    resource = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    resource_id = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    start_date = serializers.DateTimeField(required=False, allow_null=True)
    end_date = serializers.DateTimeField(required=False, allow_null=True)
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, default=50)

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and start > end:
            raise serializers.ValidationError('start_date must not be after end_date')
        return attrs
