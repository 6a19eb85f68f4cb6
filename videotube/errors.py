"""Application error types.

Services raise these; the app-level exception handlers in ``videotube.main``
translate them into the error envelope and HTTP status code.
"""

from typing import Any, List, Optional


class ApiError(Exception):
    """Base error carrying the HTTP status and a client-safe message."""

    status_code: int = 500
    message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.message
        self.errors = errors or []
        super().__init__(self.message)


class InvalidInputError(ApiError):
    """Missing or malformed request fields."""

    status_code = 400
    message = "Invalid input"


class UnauthorizedError(ApiError):
    """Bad credentials or a missing, invalid, expired or reused token."""

    status_code = 401
    message = "Unauthorized request"


class ForbiddenError(ApiError):
    """Authenticated, but not allowed to act on the resource."""

    status_code = 403
    message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    message = "Resource not found"


class ConflictError(ApiError):
    """Duplicate username or email."""

    status_code = 409
    message = "Resource already exists"


class InternalError(ApiError):
    status_code = 500
    message = "Something went wrong"


class InvalidTokenError(ValueError):
    """Raised when a JWT fails signature, expiry, purpose or shape checks.

    The message carries the reason for logs; callers report a uniform 401.
    """
