"""Service-layer exceptions mapped to HTTP responses.

Each exception class carries a default HTTP ``status_code`` and a stable
``error_code``. Handlers in ``ikiraha.api.error_handling`` render them into the JSON
envelope ``{success, message, errors?}``.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions."""

    status_code: int = 400
    error_code: str = "bad_request"
    default_message: str = "Request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        errors: Optional[list] = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors


class ValidationError(ServiceError):
    """Malformed or missing input (400)."""

    status_code = 400
    error_code = "validation_error"
    default_message = "Validation failed"


class ConflictError(ServiceError):
    """Duplicate resource, e.g. an email that is already registered (409)."""

    status_code = 409
    error_code = "conflict"
    default_message = "User with this email already exists"


class InvalidCredentialsError(ServiceError):
    """Email/password pair rejected.

    The message is identical for an unknown email and a wrong password.
    """

    status_code = 401
    error_code = "invalid_credentials"
    default_message = "Invalid email or password"


class MissingTokenError(ServiceError):
    """No bearer token on a protected request (401)."""

    status_code = 401
    error_code = "missing_token"
    default_message = "Access token required"


class InvalidTokenError(ServiceError):
    """Bad signature, expired or malformed token (403)."""

    status_code = 403
    error_code = "invalid_token"
    default_message = "Invalid or expired token"


class InvalidRefreshTokenError(ServiceError):
    """Refresh token failed signature or ledger checks (401)."""

    status_code = 401
    error_code = "invalid_refresh_token"
    default_message = "Invalid or expired refresh token"


class ForbiddenError(ServiceError):
    """Authenticated but not allowed (403)."""

    status_code = 403
    error_code = "forbidden"
    default_message = "Access denied"


class UserNotFoundError(ServiceError):
    """Token or lookup refers to a user that no longer exists."""

    status_code = 401
    error_code = "user_not_found"
    default_message = "User not found"


class InvalidResetTokenError(ServiceError):
    status_code = 400
    error_code = "invalid_reset_token"
    default_message = "Invalid or expired reset token"


class InvalidVerificationTokenError(ServiceError):
    status_code = 400
    error_code = "invalid_verification_token"
    default_message = "Invalid or already used verification token"


class PersistenceError(ServiceError):
    """Any underlying storage fault (500)."""

    status_code = 500
    error_code = "persistence_error"
    default_message = "Database operation failed"
