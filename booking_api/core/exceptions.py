"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class AuthorizationException(AppException):
    """Caller is identified but not allowed to perform the action."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error carrying every offending field."""

    def __init__(
        self,
        errors: list[dict[str, Any]] | None = None,
        message: str = "Validation error",
    ):
        """Initialize with 422 status code."""
        self.errors = errors or []
        super().__init__(message, status_code=422)


class ServiceUnavailableException(AppException):
    """Referenced service cannot be booked."""

    def __init__(self, message: str = "The selected service is not available for booking"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ServiceNotFoundException(ServiceUnavailableException):
    """Service id does not resolve."""

    def __init__(self, message: str = "Service not found"):
        super().__init__(message)


class ServiceNotBookableException(ServiceUnavailableException):
    """Service exists but is not open for online booking."""

    def __init__(self, message: str = "Service is not bookable"):
        super().__init__(message)


class SlotUnavailableException(AppException):
    """Requested time is no longer free."""

    def __init__(
        self,
        message: str = "The selected time slot is no longer available. Please choose another time.",
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class NotificationDeliveryFailure(Exception):
    """An outbound notification could not be delivered; never surfaced to clients."""

    def __init__(self, kind: str, recipient: str | None, reason: str):
        self.kind = kind
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"{kind} to {recipient or 'unknown recipient'} failed: {reason}")
