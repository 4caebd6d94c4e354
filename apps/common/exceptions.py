"""
Service-layer exceptions shared across apps.

Membership and referral operations raise these on invalid input so callers
can map them to user-facing errors. Notification and audit operations never
raise; they report failures through BestEffortResult instead.
"""


class ServiceError(Exception):
    """Base class for errors raised by service operations"""

    default_message = 'Service error'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)


class NotFoundError(ServiceError):
    default_message = 'Resource not found'


class InvalidRequestError(ServiceError):
    default_message = 'Invalid request'


class ConflictError(ServiceError):
    """The entity is not in the state the operation requires"""
    default_message = 'Resource state conflict'


def validate_payload(serializer_class, data):
    """Validate a payload with a DRF serializer and return the cleaned data"""
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise InvalidRequestError('Validation error', errors=serializer.errors)
    return serializer.validated_data
