"""Pydantic models for user accounts and pending registrations."""

from __future__ import annotations

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def normalize_email(email: str) -> str:
    """Canonical form used for lookups and uniqueness: trimmed, lower-case."""
    return email.strip().lower()


class User(BaseModel):
    """Verified user account; existence implies the email was confirmed."""

    user_id: str
    name: str
    email: str
    password_hash: str
    created_at: int


class PendingRegistration(BaseModel):
    """Unconfirmed signup awaiting email verification."""

    pending_id: str
    name: str
    email: str
    password_hash: str
    token_hash: str
    expires_at: int
    created_at: int


class RegisterRequest(BaseModel):
    """Registration request payload."""

    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=254)
    password: str = Field(min_length=6, max_length=128)
