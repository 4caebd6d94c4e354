"""
Audit trail service for tracking sensitive operations.

Writes are best-effort: a failed insert is logged and reported through
BestEffortResult, never raised, so auditing cannot break the operation
being audited.
"""
import csv
import io
import json
import logging
from datetime import timedelta

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from ..exceptions import validate_payload
from ..models import AuditLog
from ..results import BestEffortResult
from ..serializers import AuditLogSerializer, AuditQuerySerializer

logger = logging.getLogger('security.audit')
alerts_logger = logging.getLogger('security.alerts')

REDACTED = '[REDACTED]'


def _normalize_key(key):
    return str(key).replace('_', '').replace('-', '').lower()


class AuditService:
    """Service for writing and querying the audit trail"""

    SENSITIVE_FIELDS = frozenset(_normalize_key(name) for name in (
        'password',
        'twoFactorSecret',
        'resetToken',
        'socialSecurityNumber',
        'bankAccount',
        'creditCard',
    ))

    # Forwarded to the critical-audit sink in addition to the log table
    CRITICAL_ACTIONS = frozenset([
        'USER_DELETED',
        'ADMIN_ACCESS_GRANTED',
        'ADMIN_ACCESS_REVOKED',
        'PAYMENT_REFUNDED',
        'DATA_EXPORT',
        'SECURITY_BREACH',
        'BULK_DELETE',
    ])

    # Actions surfaced by get_critical_events for review
    CRITICAL_EVENT_ACTIONS = CRITICAL_ACTIONS | frozenset([
        'USER_SUSPENDED',
        'MEMBERSHIP_SUSPENDED',
        'PASSWORD_RESET_ADMIN',
    ])

    EXPORT_HEADERS = ['Timestamp', 'User', 'Action', 'Resource', 'Resource ID', 'IP Address']

    @classmethod
    def sanitize_data(cls, data):
        """Recursively replace sensitive values with a redaction marker"""
        if isinstance(data, dict):
            sanitized = {}
            for key, value in data.items():
                if _normalize_key(key) in cls.SENSITIVE_FIELDS:
                    sanitized[key] = REDACTED
                else:
                    sanitized[key] = cls.sanitize_data(value)
            return sanitized
        if isinstance(data, (list, tuple)):
            return [cls.sanitize_data(item) for item in data]
        return data

    @classmethod
    def is_critical_action(cls, action):
        return action in cls.CRITICAL_ACTIONS

    @classmethod
    def _build_log(cls, action, resource, user_id=None, resource_id=None, old_data=None,
                   new_data=None, metadata=None, ip_address=None, user_agent=None):
        return AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_data=cls.sanitize_data(old_data),
            new_data=cls.sanitize_data(new_data),
            metadata=cls.sanitize_data(metadata),
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=timezone.now(),
        )

    @classmethod
    def log(cls, action, resource, user_id=None, resource_id=None, old_data=None,
            new_data=None, metadata=None, ip_address=None, user_agent=None):
        """Append one audit record. Never raises."""
        try:
            entry = cls._build_log(
                action, resource, user_id=user_id, resource_id=resource_id,
                old_data=old_data, new_data=new_data, metadata=metadata,
                ip_address=ip_address, user_agent=user_agent,
            )
            # Savepoint keeps a failed insert from poisoning the caller's transaction
            with transaction.atomic():
                entry.save()
        except Exception as e:
            logger.error(f"Failed to create audit log for {action}: {e}")
            return BestEffortResult.degraded('audit_write_failed', action=action, error=str(e))

        if cls.is_critical_action(action):
            cls._log_to_critical_audit_system(entry)

        return BestEffortResult.success(audit_log_id=entry.id)

    @classmethod
    def log_multiple(cls, entries):
        """Bulk insert a list of entry dicts (same keys as log)"""
        try:
            logs = [cls._build_log(**entry) for entry in entries]
            with transaction.atomic():
                AuditLog.objects.bulk_create(logs)
        except Exception as e:
            logger.error(f"Failed to create multiple audit logs: {e}")
            return BestEffortResult.degraded('audit_write_failed', count=len(entries), error=str(e))
        return BestEffortResult.success(count=len(logs))

    @staticmethod
    def _log_to_critical_audit_system(entry):
        payload = {
            'timestamp': timezone.now().isoformat(),
            'user_id': entry.user_id,
            'action': entry.action,
            'resource': entry.resource,
            'resource_id': entry.resource_id,
            'new_data': entry.new_data,
            'metadata': entry.metadata,
            'ip_address': entry.ip_address,
        }
        try:
            alerts_logger.critical(f"CRITICAL AUDIT EVENT: {json.dumps(payload, cls=DjangoJSONEncoder)}")
        except Exception as e:
            logger.error(f"Failed to forward critical audit event {entry.action}: {e}")

    @staticmethod
    def _filtered_queryset(filters):
        queryset = AuditLog.objects.select_related('user')
        if filters.get('user_id'):
            queryset = queryset.filter(user_id=filters['user_id'])
        if filters.get('action'):
            queryset = queryset.filter(action__icontains=filters['action'])
        if filters.get('resource'):
            queryset = queryset.filter(resource=filters['resource'])
        if filters.get('resource_id'):
            queryset = queryset.filter(resource_id=filters['resource_id'])
        if filters.get('start_date'):
            queryset = queryset.filter(timestamp__gte=filters['start_date'])
        if filters.get('end_date'):
            queryset = queryset.filter(timestamp__lte=filters['end_date'])
        return queryset.order_by('-timestamp')

    @classmethod
    def get_audit_logs(cls, **query):
        """
        Filtered, paginated audit log listing.

        Accepts user_id, action (case-insensitive substring), resource,
        resource_id, start_date, end_date, page and limit.
        """
        filters = validate_payload(AuditQuerySerializer, query)
        page, limit = filters['page'], filters['limit']
        queryset = cls._filtered_queryset(filters)

        total = queryset.count()
        offset = (page - 1) * limit
        return {
            'data': list(queryset[offset:offset + limit]),
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': (total + limit - 1) // limit,
            }
        }

    @classmethod
    def get_user_activity(cls, user_id, days=30, page=1, limit=20):
        start_date = timezone.now() - timedelta(days=days)
        return cls.get_audit_logs(user_id=user_id, start_date=start_date, page=page, limit=limit)

    @staticmethod
    def get_resource_history(resource, resource_id):
        """Chronological history of one resource"""
        return list(
            AuditLog.objects.select_related('user')
            .filter(resource=resource, resource_id=str(resource_id))
            .order_by('timestamp')
        )

    @classmethod
    def get_critical_events(cls, days=7):
        start_date = timezone.now() - timedelta(days=days)
        return list(
            AuditLog.objects.select_related('user')
            .filter(action__in=cls.CRITICAL_EVENT_ACTIONS, timestamp__gte=start_date)
            .order_by('-timestamp')
        )

    @staticmethod
    def get_audit_statistics(days=30):
        start_date = timezone.now() - timedelta(days=days)
        recent = AuditLog.objects.filter(timestamp__gte=start_date)

        top_actions = (
            recent.values('action').annotate(count=Count('id')).order_by('-count', 'action')[:10]
        )
        top_resources = (
            recent.values('resource').annotate(count=Count('id')).order_by('-count', 'resource')[:10]
        )

        return {
            'total_logs': recent.count(),
            'unique_users': recent.exclude(user__isnull=True).values('user').distinct().count(),
            'top_actions': [{'action': row['action'], 'count': row['count']} for row in top_actions],
            'top_resources': [{'resource': row['resource'], 'count': row['count']} for row in top_resources],
        }

    @classmethod
    def export_audit_logs(cls, format='csv', **query):
        """Export matching logs as CSV or JSON text"""
        query['limit'] = settings.AUDIT_EXPORT_LIMIT
        query.setdefault('page', 1)
        logs = cls.get_audit_logs(**query)['data']

        if format == 'json':
            data = AuditLogSerializer(logs, many=True).data
            return json.dumps(data, indent=2, cls=DjangoJSONEncoder)

        output = io.StringIO()
        writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
        writer.writerow(cls.EXPORT_HEADERS)
        for log in logs:
            if log.user:
                actor = f"{log.user.first_name} {log.user.last_name} ({log.user.email})"
            else:
                actor = 'System'
            writer.writerow([
                log.timestamp.isoformat(),
                actor,
                log.action,
                log.resource,
                log.resource_id or '',
                log.ip_address or '',
            ])
        return output.getvalue()

    # Convenience loggers for common operations

    @classmethod
    def log_user_login(cls, user_id, ip_address=None, user_agent=None, success=True):
        return cls.log(
            'LOGIN_SUCCESS' if success else 'LOGIN_FAILED', 'users',
            user_id=user_id, resource_id=user_id, ip_address=ip_address, user_agent=user_agent,
        )

    @classmethod
    def log_user_logout(cls, user_id, ip_address=None):
        return cls.log('LOGOUT', 'users', user_id=user_id, resource_id=user_id, ip_address=ip_address)

    @classmethod
    def log_password_change(cls, user_id, admin_user_id=None):
        return cls.log(
            'PASSWORD_RESET_ADMIN' if admin_user_id else 'PASSWORD_CHANGED', 'users',
            user_id=admin_user_id or user_id,
            resource_id=user_id,
            metadata={'target_user_id': user_id} if admin_user_id else None,
        )

    @classmethod
    def log_data_access(cls, user_id, resource, resource_id, action='READ'):
        return cls.log(f"DATA_{action.upper()}", resource, user_id=user_id, resource_id=resource_id)

    @classmethod
    def log_payment_event(cls, user_id, payment_id, action, amount=None):
        return cls.log(
            f"PAYMENT_{action.upper()}", 'payments',
            user_id=user_id, resource_id=payment_id, metadata={'amount': amount},
        )

    @classmethod
    def log_admin_action(cls, admin_user_id, action, target_resource, target_id, details=None):
        return cls.log(
            f"ADMIN_{action.upper()}", target_resource,
            user_id=admin_user_id, resource_id=target_id, metadata=details,
        )

    @classmethod
    def log_security_event(cls, user_id, event, details=None, ip_address=None):
        return cls.log(
            f"SECURITY_{event.upper()}", 'security',
            user_id=user_id, metadata=details, ip_address=ip_address,
        )

    @classmethod
    def log_data_export(cls, user_id, export_type, record_count):
        return cls.log(
            'DATA_EXPORT', 'data',
            user_id=user_id, metadata={'export_type': export_type, 'record_count': record_count},
        )

    @staticmethod
    def cleanup_old_logs(retention_days=None):
        """Hard-delete logs older than the retention window. Irreversible."""
        if retention_days is None:
            retention_days = settings.AUDIT_RETENTION_DAYS
        cutoff = timezone.now() - timedelta(days=retention_days)
        deleted, _ = AuditLog.objects.filter(timestamp__lt=cutoff).delete()
        logger.info(f"Cleaned up {deleted} audit logs older than {retention_days} days")
        return deleted

    @staticmethod
    def detect_suspicious_activity():
        """
        Static heuristics over the trailing window:
        - IP addresses with too many failed logins
        - users with too many DATA_* events
        - users with too many events outside business hours
        """
        thresholds = settings.SUSPICIOUS_ACTIVITY_THRESHOLDS
        since = timezone.now() - timedelta(hours=thresholds['window_hours'])
        opens_at, closes_at = thresholds['business_hours']
        recent = AuditLog.objects.filter(timestamp__gte=since)

        failed_logins = (
            recent.filter(action='LOGIN_FAILED')
            .exclude(ip_address__isnull=True)
            .values('ip_address')
            .annotate(count=Count('id'))
            .filter(count__gt=thresholds['failed_logins_per_ip'])
            .order_by('-count')
        )

        data_access = (
            recent.filter(action__startswith='DATA_')
            .exclude(user__isnull=True)
            .values('user_id')
            .annotate(count=Count('id'))
            .filter(count__gt=thresholds['data_access_per_user'])
            .order_by('-count')
        )

        off_hours = (
            recent.exclude(user__isnull=True)
            .filter(Q(timestamp__hour__lt=opens_at) | Q(timestamp__hour__gte=closes_at))
            .values('user_id')
            .annotate(count=Count('id'))
            .filter(count__gt=thresholds['off_hours_events_per_user'])
            .order_by('-count')
        )

        return {
            'multiple_failed_logins': list(failed_logins),
            'unusual_data_access': list(data_access),
            'off_hours_activity': list(off_hours),
        }
