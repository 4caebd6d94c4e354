"""
Fixed-window rate limiting with a block period.

Counters live in Django's cache framework. With the default LocMemCache the
limits are per-process and reset on restart; configure a shared cache
backend to enforce them across instances. Updates are read-modify-write and
not atomic across processes.
"""
import logging
import time
from dataclasses import dataclass

from django.conf import settings
from django.core.cache import cache

security_logger = logging.getLogger('security')


@dataclass(frozen=True)
class RateLimitStatus:
    allowed: bool
    remaining: int
    reset_time: float


class RateLimiter:
    """Counts hits per key; exceeding max_requests blocks the key for block_seconds"""

    def __init__(self, name, max_requests, window_seconds, block_seconds=None):
        self.name = name
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds if block_seconds is not None else window_seconds

    @classmethod
    def from_settings(cls, name):
        max_requests, window_seconds, block_seconds = settings.RATE_LIMITS[name]
        return cls(name, max_requests, window_seconds, block_seconds)

    def _cache_key(self, key):
        return f"rate_limit:{self.name}:{key}"

    def _store(self, key, entry, now):
        # Keep the entry until its window or block ends
        timeout = max(1, int(entry['reset_time'] - now) + 1)
        cache.set(self._cache_key(key), entry, timeout)

    def is_blocked(self, key):
        entry = cache.get(self._cache_key(key))
        if not entry:
            return False

        if entry['blocked'] and time.time() > entry['reset_time']:
            cache.delete(self._cache_key(key))
            return False

        return entry['blocked']

    def increment(self, key):
        now = time.time()
        entry = cache.get(self._cache_key(key))

        if not entry or now > entry['reset_time']:
            entry = {'count': 1, 'reset_time': now + self.window_seconds, 'blocked': False}
            self._store(key, entry, now)
            return RateLimitStatus(True, self.max_requests - 1, entry['reset_time'])

        entry['count'] += 1
        if entry['count'] > self.max_requests:
            # Every hit while over the limit restarts the block period
            if not entry['blocked']:
                security_logger.warning(f"Rate limit '{self.name}' exceeded for {key}")
            entry['blocked'] = True
            entry['reset_time'] = now + self.block_seconds

        self._store(key, entry, now)
        return RateLimitStatus(
            entry['count'] <= self.max_requests,
            max(0, self.max_requests - entry['count']),
            entry['reset_time'],
        )

    def reset(self, key):
        cache.delete(self._cache_key(key))


class _LazyLimiter:
    """Builds the limiter from settings on first use so overrides apply in tests"""

    def __init__(self, name):
        self._name = name

    def _limiter(self):
        return RateLimiter.from_settings(self._name)

    def __getattr__(self, attr):
        return getattr(self._limiter(), attr)


login_rate_limit = _LazyLimiter('login')
api_rate_limit = _LazyLimiter('api')
email_rate_limit = _LazyLimiter('email')
