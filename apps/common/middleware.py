"""
Request throttling middleware
"""
import math
import time

from django.conf import settings
from django.http import JsonResponse

from .ratelimit import api_rate_limit, login_rate_limit
from .services import AuditService


class RateLimitMiddleware:
    """Applies the login limiter to login paths and the API limiter to /api/"""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        limiter = self._limiter_for(request.path)
        if limiter is not None and settings.RATE_LIMIT_ENABLED:
            key = self._get_client_ip(request)
            if limiter.is_blocked(key):
                return self._rate_limit_response(request, key, limiter)
            status = limiter.increment(key)
            if not status.allowed:
                return self._rate_limit_response(request, key, limiter, status.reset_time)

        return self.get_response(request)

    @staticmethod
    def _limiter_for(path):
        if any(path.startswith(prefix) for prefix in settings.RATE_LIMIT_LOGIN_PATHS):
            return login_rate_limit
        if path.startswith('/api/'):
            return api_rate_limit
        return None

    def _rate_limit_response(self, request, key, limiter, reset_time=None):
        user = getattr(request, 'user', None)
        user_id = user.id if user is not None and user.is_authenticated else None

        AuditService.log_security_event(
            user_id,
            'RATE_LIMIT_EXCEEDED',
            details={'path': request.path, 'limiter': limiter.name},
            ip_address=key,
        )

        retry_after = limiter.block_seconds
        if reset_time is not None:
            retry_after = max(1, math.ceil(reset_time - time.time()))

        response = JsonResponse({'code': 429, 'msg': 'Too many requests', 'data': None}, status=429)
        response['Retry-After'] = str(retry_after)
        return response

    @staticmethod
    def _get_client_ip(request):
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            return x_forwarded_for.split(',')[0].strip()
        return request.META.get('REMOTE_ADDR', '127.0.0.1')
