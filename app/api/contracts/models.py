"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from app.auth.models import UserSummary


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class AuthSessionResponse(BaseModel):
    """Login response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    user: UserSummary


class TokenPairResponse(BaseModel):
    """Refresh response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int


class AuthMeResponse(BaseModel):
    """Current user endpoint response payload."""

    user_id: str
    email: str


class MessageResponse(BaseModel):
    """Plain acknowledgement with a human-readable message."""

    status: Literal["ok"] = "ok"
    message: str


class LogoutAllResponse(BaseModel):
    """Logout-everywhere response payload."""

    status: Literal["ok"] = "ok"
    revoked: int


class VerificationStatusResponse(BaseModel):
    """Verification status lookup payload."""

    verified: bool
