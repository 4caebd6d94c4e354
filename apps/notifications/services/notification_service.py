"""
Notification service: in-app persistence plus optional email, SMS or push delivery.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import close_old_connections, transaction
from django.utils import timezone

from apps.common.exceptions import InvalidRequestError, NotFoundError, validate_payload
from apps.common.results import BestEffortResult

from ..models import Notification, NotificationTemplate
from ..providers import EmailProvider, PushProvider, SmsProvider
from .. import scheduler as notification_scheduler
from ..serializers import NotificationPayloadSerializer, NotificationTemplateSerializer

logger = logging.getLogger('notifications')

User = get_user_model()


class NotificationService:
    """Service class for notification operations"""

    TEMPLATE_UPDATE_FIELDS = ('subject', 'template', 'is_active')

    @classmethod
    def send(cls, payload):
        """
        Persist an in-app notification and deliver it on the requested channel.

        Never raises; failures are reported as a degraded result.
        """
        try:
            data = dict(validate_payload(NotificationPayloadSerializer, payload))
        except InvalidRequestError as e:
            logger.warning(f"Rejected notification payload: {e.errors}")
            return BestEffortResult.degraded('invalid_payload', errors=e.errors)

        scheduled_for = data.pop('scheduled_for', None)
        if scheduled_for is not None and scheduled_for > timezone.now():
            job_id = notification_scheduler.schedule(scheduled_for, cls.send, data)
            return BestEffortResult.success(scheduled=True, job_id=job_id, scheduled_for=scheduled_for)

        try:
            return cls._send_now(data)
        except Exception as e:
            logger.error(f"Failed to send notification to user {data['user_id']}: {e}")
            return BestEffortResult.degraded('send_failed', error=str(e))

    @classmethod
    def _send_now(cls, data):
        user = User.objects.filter(pk=data['user_id']).first()
        if user is None:
            logger.warning(f"Notification skipped, user {data['user_id']} not found")
            return BestEffortResult.degraded('user_not_found', user_id=data['user_id'])

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    user=user,
                    type=data['type'],
                    title=data['title'],
                    message=data['message'],
                    data=data.get('data') or {},
                    channel=data['channel'],
                    priority=data['priority'],
                )
        except Exception as e:
            logger.error(f"Failed to store notification for user {user.id}: {e}")
            return BestEffortResult.degraded('in_app_write_failed', error=str(e))

        channel = data['channel']
        try:
            delivery = cls._deliver(user, data)
        except Exception as e:
            logger.error(f"{channel} delivery failed for user {user.id}: {e}")
            delivery = BestEffortResult.degraded('provider_error', error=str(e))

        if delivery is not None and delivery.is_degraded:
            return BestEffortResult.degraded(
                delivery.reason,
                notification_id=notification.id,
                channel=channel,
                **delivery.details,
            )

        return BestEffortResult.success(
            notification_id=notification.id,
            channel=channel,
            delivered=delivery is not None,
        )

    @staticmethod
    def _deliver(user, data):
        """Returns the provider result, or None when no external delivery applies"""
        channel = data['channel']
        if channel == Notification.EMAIL and user.email_notifications and user.email:
            return EmailProvider.send(user, data['type'], data['title'], data['message'], data.get('data'))
        if channel == Notification.SMS and user.sms_notifications and user.phone:
            return SmsProvider.send(user, data['title'], data['message'])
        if channel == Notification.PUSH and user.push_notifications:
            return PushProvider.send(user, data['title'], data['message'], data.get('data'))
        return None

    @classmethod
    def send_bulk(cls, user_ids, payload):
        """Send the same notification to many users; every send settles independently"""
        batch_size = settings.NOTIFICATION_BULK_BATCH_SIZE
        user_ids = list(dict.fromkeys(user_ids))
        results = {}

        for start in range(0, len(user_ids), batch_size):
            batch = user_ids[start:start + batch_size]
            results.update(cls._send_batch(batch, payload))

        delivered = sum(1 for result in results.values() if result.ok)
        summary = {
            'total': len(user_ids),
            'sent': delivered,
            'degraded': len(user_ids) - delivered,
            'results': results,
        }
        logger.info(f"Bulk notification sent: {delivered}/{len(user_ids)} ok")
        return summary

    @classmethod
    def _send_batch(cls, user_ids, payload):
        workers = settings.NOTIFICATION_SEND_WORKERS
        if workers <= 1 or len(user_ids) <= 1:
            return {user_id: cls.send({**payload, 'user_id': user_id}) for user_id in user_ids}

        results = {}
        with ThreadPoolExecutor(max_workers=min(workers, len(user_ids))) as executor:
            futures = {
                user_id: executor.submit(cls._send_in_thread, {**payload, 'user_id': user_id})
                for user_id in user_ids
            }
            for user_id, future in futures.items():
                try:
                    results[user_id] = future.result()
                except Exception as e:
                    logger.error(f"Bulk notification to user {user_id} failed: {e}")
                    results[user_id] = BestEffortResult.degraded('dispatch_failed', error=str(e))
        return results

    @classmethod
    def _send_in_thread(cls, payload):
        try:
            return cls.send(payload)
        finally:
            close_old_connections()

    @classmethod
    def send_to_role(cls, role_name, payload):
        user_ids = list(
            User.objects.filter(groups__name=role_name, is_active=True)
            .values_list('id', flat=True)
            .distinct()
        )
        if not user_ids:
            logger.warning(f"No users found for role {role_name}")
        return cls.send_bulk(user_ids, payload)

    # Read state and listing

    @staticmethod
    def mark_as_read(notification_id, user_id):
        updated = Notification.objects.filter(
            id=notification_id, user_id=user_id, is_read=False
        ).update(is_read=True, read_at=timezone.now())
        return updated > 0

    @staticmethod
    def mark_all_as_read(user_id):
        return Notification.objects.filter(user_id=user_id, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )

    @staticmethod
    def get_unread_count(user_id):
        return Notification.objects.filter(user_id=user_id, is_read=False).count()

    @staticmethod
    def delete_notification(notification_id, user_id):
        deleted, _ = Notification.objects.filter(id=notification_id, user_id=user_id).delete()
        return deleted > 0

    @staticmethod
    def get_user_notifications(user_id, page=1, limit=20, unread_only=False, type=None):
        queryset = Notification.objects.filter(user_id=user_id)
        if unread_only:
            queryset = queryset.filter(is_read=False)
        if type:
            queryset = queryset.filter(type=type)

        page = max(1, int(page))
        limit = max(1, int(limit))
        total = queryset.count()
        offset = (page - 1) * limit
        notifications = queryset.order_by('-created_at', '-id')[offset:offset + limit]

        return {
            'data': [
                {
                    'id': n.id,
                    'type': n.type,
                    'title': n.title,
                    'message': n.message,
                    'data': n.data,
                    'channel': n.channel,
                    'priority': n.priority,
                    'is_read': n.is_read,
                    'read_at': n.read_at,
                    'created_at': n.created_at,
                }
                for n in notifications
            ],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': math.ceil(total / limit),
            },
        }

    # Templates

    @staticmethod
    def create_template(name, type, subject, template, is_active=True):
        data = validate_payload(NotificationTemplateSerializer, {
            'name': name,
            'type': type,
            'subject': subject,
            'template': template,
            'is_active': is_active,
        })
        created = NotificationTemplate.objects.create(**data)
        logger.info(f"Notification template '{name}' created")
        return created

    @classmethod
    def update_template(cls, template_id, **fields):
        try:
            template = NotificationTemplate.objects.get(pk=template_id)
        except NotificationTemplate.DoesNotExist:
            raise NotFoundError('Notification template not found')

        unknown = set(fields) - set(cls.TEMPLATE_UPDATE_FIELDS)
        if unknown:
            raise InvalidRequestError(f"Cannot update template fields: {', '.join(sorted(unknown))}")

        serializer = NotificationTemplateSerializer(template, data=fields, partial=True)
        if not serializer.is_valid():
            raise InvalidRequestError('Validation error', errors=serializer.errors)
        return serializer.save()

    # Event helpers

    @classmethod
    def on_membership_expiring(cls, user_id, days_left):
        return cls.send({
            'user_id': user_id,
            'type': Notification.MEMBERSHIP_EXPIRY,
            'title': 'Membership Expiring Soon',
            'message': (
                f"Your membership expires in {days_left} days. "
                "Renew now to continue enjoying member benefits."
            ),
            'data': {'days_left': days_left},
            'channel': Notification.EMAIL,
            'priority': 'HIGH',
        })

    @classmethod
    def on_payment_success(cls, user_id, amount, description):
        return cls.send({
            'user_id': user_id,
            'type': Notification.PAYMENT_SUCCESS,
            'title': 'Payment Successful',
            'message': f"Your payment of ${amount} for {description} was processed successfully.",
            'data': {'amount': amount, 'description': description},
            'channel': Notification.EMAIL,
        })
