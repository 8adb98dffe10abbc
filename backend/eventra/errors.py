from typing import Optional


class EventraError(ValueError):
    """Base class for user-visible errors raised by the marketplace services."""

    status_code = 500
    error = "INTERNAL_ERROR"

    def __init__(self, message: str, *, status_code: Optional[int] = None, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error is not None:
            self.error = error


class ValidationError(EventraError):
    status_code = 400
    error = "VALIDATION_ERROR"


class AuthenticationError(EventraError):
    status_code = 401
    error = "UNAUTHORIZED"


class ForbiddenError(EventraError):
    status_code = 403
    error = "FORBIDDEN"


class NotFoundError(EventraError):
    status_code = 404
    error = "NOT_FOUND"


class ConflictError(EventraError):
    status_code = 409
    error = "CONFLICT"


class InvalidStateError(EventraError):
    status_code = 400
    error = "INVALID_STATE"


class InternalError(EventraError):
    pass
