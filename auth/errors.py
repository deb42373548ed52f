"""
auth/errors.py -- Domain error taxonomy for the account service.

Each error carries a machine-readable code, a client-safe message, and the
HTTP status the API layer answers with. The api/ exception handler turns any
AuthError into the standard error envelope, so the service and guard raise
these instead of HTTPException (auth/ stays framework-free).

InvalidCredentials deliberately has one message for both "unknown email" and
"wrong password" -- the response must not reveal whether an email is registered.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error the service and guard raise on purpose."""

    code = "error"
    status_code = 500
    message = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationFailed(AuthError):
    """Malformed or missing input fields. Carries one entry per offending field."""

    code = "validation_failed"
    status_code = 400
    message = "Validation failed."

    def __init__(self, fields: list[dict[str, str]] | None = None, message: str | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    status_code = 400
    message = "Email already registered."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 400
    message = "Invalid credentials."


class Unauthorized(AuthError):
    """Token missing, token invalid, or token subject no longer exists."""

    code = "unauthorized"
    status_code = 401
    message = "Not authorized."

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(f"Not authorized, {reason}." if reason else None)


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    message = "Forbidden: insufficient role."


class NotFound(AuthError):
    code = "not_found"
    status_code = 404
    message = "User not found."


class PasswordResetNotImplemented(AuthError):
    """Raised by reset_password(). There is no reset token mechanism yet."""

    code = "not_implemented"
    status_code = 501
    message = "Password reset functionality not yet implemented."


class ServerError(AuthError):
    """A store invariant broke mid-operation. Logged server-side; client sees a generic 500."""

    code = "internal_error"
    status_code = 500
