"""Authentication failure taxonomy, independent of HTTP."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for expected authentication protocol failures."""

    error_code = "AUTH_ERROR"
    default_message = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    error_code = "AUTH_INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class Forbidden(AuthError):
    error_code = "AUTH_FORBIDDEN"
    default_message = "Forbidden"


class InvalidToken(AuthError):
    error_code = "AUTH_TOKEN_INVALID"
    default_message = "Invalid refresh token"


class InvalidOrExpiredToken(AuthError):
    error_code = "AUTH_TOKEN_INVALID_OR_EXPIRED"
    default_message = "Invalid or expired token"


class ReplayDetected(AuthError):
    """Used refresh token presented again; its family is already revoked."""

    error_code = "AUTH_REFRESH_REPLAY"
    default_message = (
        "Refresh token reuse detected. All sessions in this family have been revoked."
    )


class Expired(AuthError):
    error_code = "AUTH_TOKEN_EXPIRED"
    default_message = "Refresh token has expired"


class Conflict(AuthError):
    error_code = "AUTH_CONFLICT"
    default_message = "An account with this email already exists"


class AlreadyVerified(AuthError):
    error_code = "AUTH_ALREADY_VERIFIED"
    default_message = "Email is already verified"


class UserNotFound(AuthError):
    error_code = "AUTH_USER_NOT_FOUND"
    default_message = "User not found"
