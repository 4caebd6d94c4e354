"""
Delivery channels for notifications.

Each provider returns a BestEffortResult; a missing configuration is reported
as a degraded result rather than an error.
"""
import logging
import re

import requests
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from apps.common.results import BestEffortResult

from .models import NotificationTemplate

logger = logging.getLogger('notifications')

_TAG_RE = re.compile(r'<[^>]+>')


def render_template(text, replacements):
    """Replace every {{key}} occurrence literally; unknown placeholders stay"""
    for key, value in replacements.items():
        text = text.replace('{{' + key + '}}', '' if value is None else str(value))
    return text


def strip_html(html):
    return _TAG_RE.sub('', html).strip()


class EmailProvider:

    @staticmethod
    def is_configured():
        if settings.EMAIL_BACKEND.endswith('smtp.EmailBackend'):
            return bool(settings.EMAIL_HOST)
        return True

    @staticmethod
    def build_message(user, notification_type, title, message, data):
        """Returns (subject, html or None, text) for the user's email"""
        replacements = {
            'title': title,
            'message': message,
            'user_name': user.display_name,
            'company': user.company,
        }
        replacements.update(data or {})

        template = NotificationTemplate.objects.filter(type=notification_type, is_active=True).first()
        if template is None:
            return title, None, message

        subject = render_template(template.subject, replacements)
        html = render_template(template.template, replacements)
        return subject, html, strip_html(html)

    @classmethod
    def send(cls, user, notification_type, title, message, data=None):
        if not cls.is_configured():
            logger.warning("Email transport not configured, skipping email notification")
            return BestEffortResult.degraded('email_not_configured')

        subject, html, text = cls.build_message(user, notification_type, title, message, data)
        email = EmailMultiAlternatives(subject, text, settings.DEFAULT_FROM_EMAIL, [user.email])
        if html:
            email.attach_alternative(html, 'text/html')
        email.send(fail_silently=False)

        logger.info(f"Email notification sent to user {user.id}")
        return BestEffortResult.success(recipient=user.email)


class SmsProvider:

    @staticmethod
    def is_configured():
        return bool(settings.TWILIO_SID and settings.TWILIO_TOKEN and settings.TWILIO_PHONE)

    @classmethod
    def send(cls, user, title, message):
        if not cls.is_configured():
            logger.warning("SMS provider not configured, skipping SMS notification")
            return BestEffortResult.degraded('sms_not_configured')

        response = requests.post(
            settings.TWILIO_API_URL.format(sid=settings.TWILIO_SID),
            data={
                'To': user.phone,
                'From': settings.TWILIO_PHONE,
                'Body': f"{title}: {message}",
            },
            auth=(settings.TWILIO_SID, settings.TWILIO_TOKEN),
            timeout=settings.TWILIO_TIMEOUT,
        )
        response.raise_for_status()

        logger.info(f"SMS notification sent to user {user.id}")
        return BestEffortResult.success(provider_id=response.json().get('sid'))


class PushProvider:

    @staticmethod
    def is_configured():
        return bool(settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY)

    @staticmethod
    def get_subscriptions(user):
        # TODO: persist browser push subscriptions (endpoint and keys) per user
        return []

    @classmethod
    def send(cls, user, title, message, data=None):
        if not cls.is_configured():
            logger.warning("Push provider not configured, skipping push notification")
            return BestEffortResult.degraded('push_not_configured')

        subscriptions = cls.get_subscriptions(user)
        for subscription in subscriptions:
            logger.info(f"Push notification for user {user.id} queued to {subscription}")

        return BestEffortResult.success(delivered=len(subscriptions))
