"""
Domain error hierarchy.

Services raise these; the API layer turns them into the response envelope
using ``status_code`` and ``message``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class AuthError(AppError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDeniedError(AuthError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class StaleWriteError(ConflictError):
    """A conditional write lost against a concurrent writer."""
    default_message = "The resource was modified concurrently, please retry"


class StateError(AppError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class UpstreamError(AppError):
    status_code = 500
    default_message = "An upstream service failed"
