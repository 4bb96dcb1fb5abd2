"""Token codec: signed access/refresh tokens, lookup hashes and family ids."""

from __future__ import annotations

import time
import uuid
from typing import Any

from app.auth.errors import InvalidToken
from app.core.config import AuthConfig
from app.core.security import build_signed_token, decode_signed_token, sha256_hex

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenCodec:
    """Issue and verify signed tokens with separate access/refresh secrets."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config

    def issue_access_token(self, user_id: str, email: str) -> str:
        """Return a short-lived access token for the user."""
        return self._issue(
            {"sub": user_id, "email": email},
            token_type=ACCESS_TOKEN_TYPE,
            ttl_seconds=self._config.access_token_ttl_seconds,
            secret=self._config.access_secret,
        )

    def issue_refresh_token(self, user_id: str, family: str) -> str:
        """Return a long-lived refresh token bound to a family."""
        return self._issue(
            {"sub": user_id, "family": family},
            token_type=REFRESH_TOKEN_TYPE,
            ttl_seconds=self._config.refresh_token_ttl_seconds,
            secret=self._config.refresh_secret,
        )

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """Validate access token signature, expiry, issuer and type."""
        return self._verify(
            token, token_type=ACCESS_TOKEN_TYPE, secret=self._config.access_secret
        )

    def verify_refresh_token(self, token: str) -> dict[str, Any]:
        """Validate refresh token signature, expiry, issuer and type."""
        return self._verify(
            token, token_type=REFRESH_TOKEN_TYPE, secret=self._config.refresh_secret
        )

    @staticmethod
    def hash(token: str) -> str:
        """Hash raw token for storage/comparison."""
        return sha256_hex(token)

    @staticmethod
    def new_family_id() -> str:
        """Return an opaque id for a new lineage of refresh tokens."""
        return str(uuid.uuid4())

    def _issue(
        self, claims: dict[str, Any], *, token_type: str, ttl_seconds: int, secret: str
    ) -> str:
        now_ts = int(time.time())
        payload = {
            "iss": self._config.issuer,
            **claims,
            "type": token_type,
            "iat": now_ts,
            "exp": now_ts + int(ttl_seconds),
            # Unique per token so two issues in the same second never collide.
            "jti": uuid.uuid4().hex,
        }
        return build_signed_token(payload, secret)

    def _verify(self, token: str, *, token_type: str, secret: str) -> dict[str, Any]:
        try:
            payload = decode_signed_token(token, secret)
        except ValueError as exc:
            raise InvalidToken(str(exc)) from exc

        if str(payload.get("iss") or "") != self._config.issuer:
            raise InvalidToken("Invalid token issuer")
        if str(payload.get("type") or "") != token_type:
            raise InvalidToken("Invalid token type")
        if not payload.get("sub"):
            raise InvalidToken("Token has no subject")
        return payload
