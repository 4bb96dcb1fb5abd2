"""Pydantic models for authentication domain."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.users.models import EMAIL_PATTERN


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Refresh request payload."""

    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """Logout request payload."""

    refresh_token: str = Field(min_length=1)


class ResendVerificationRequest(BaseModel):
    """Resend-verification request payload."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)


class UserSummary(BaseModel):
    """Public user fields returned after login; never carries the hash."""

    id: str
    name: str
    email: str


class TokenPair(BaseModel):
    """Access + refresh token pair issued by a refresh rotation."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class AuthSession(TokenPair):
    """Token pair plus user summary issued at login."""

    user: UserSummary


class AccessClaims(BaseModel):
    """Normalized claims of a verified access token."""

    user_id: str
    email: str


class RefreshTokenRecord(BaseModel):
    """Refresh token persistence record; only the token hash is stored."""

    record_id: str
    token_hash: str
    user_id: str
    family: str
    is_used: bool = False
    expires_at: int
    created_at: int
