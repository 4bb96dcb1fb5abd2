"""Public API response contracts."""

from app.api.contracts.models import (
    ApiErrorResponse,
    AuthMeResponse,
    AuthSessionResponse,
    HealthResponse,
    LogoutAllResponse,
    MessageResponse,
    TokenPairResponse,
    VerificationStatusResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthMeResponse",
    "AuthSessionResponse",
    "HealthResponse",
    "LogoutAllResponse",
    "MessageResponse",
    "TokenPairResponse",
    "VerificationStatusResponse",
]
