"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status and error code it is rendered with by
the handlers registered in ``core.middleware.error_handling``.
"""

from fastapi import status


class AppError(Exception):
    """Base class for errors that map to a client-visible response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "APP_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AppError):
    """Entity absent or soft-deleted."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found"


class UnauthorizedError(AppError):
    """Role or ownership mismatch."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "UNAUTHORIZED"
    default_message = "You are not allowed to perform this action"


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_FAILED"
    default_message = "Authentication required"


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVALID_INPUT"
    default_message = "Invalid input provided"


class ConflictError(AppError):
    """Duplicate action, e.g. double-apply or duplicate company name."""

    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "Resource already exists"


class InconsistentStateError(AppError):
    """Stored state contradicts itself. Logged and surfaced as a server error."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INCONSISTENT_STATE"
    default_message = "Inconsistent state detected"


class ExternalServiceError(AppError):
    """Identity provider, object storage or language model call failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "EXTERNAL_SERVICE_ERROR"
    default_message = "An external service failed"
