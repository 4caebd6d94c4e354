"""
Result type for best-effort operations.

Audit writes and notification deliveries must never abort the business
operation that triggered them, so their failures are returned rather than
raised.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BestEffortResult:
    status: str
    reason: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    OK = 'ok'
    DEGRADED = 'degraded'

    @classmethod
    def success(cls, **details):
        return cls(status=cls.OK, details=details)

    @classmethod
    def degraded(cls, reason, **details):
        return cls(status=cls.DEGRADED, reason=reason, details=details)

    @property
    def ok(self):
        return self.status == self.OK

    @property
    def is_degraded(self):
        return self.status == self.DEGRADED

    def __bool__(self):
        return self.ok
