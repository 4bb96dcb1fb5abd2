"""Shared API error types and helpers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from fastapi import HTTPException

from app.auth.errors import (
    AlreadyVerified,
    AuthError,
    Conflict,
    Forbidden,
)


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes not owned by the auth taxonomy."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    EMAIL_DELIVERY_FAILED = "EMAIL_DELIVERY_FAILED"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode | str, message: str
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )


def status_for_auth_error(exc: AuthError) -> int:
    """Map a domain auth failure to its HTTP status."""
    if isinstance(exc, Forbidden):
        return 403
    if isinstance(exc, (Conflict, AlreadyVerified)):
        return 409
    return 401


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }
