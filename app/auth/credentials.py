"""Password hashing and verification used by login and registration."""

from __future__ import annotations

from app.core.security import hash_password, verify_password


class CredentialVerifier:
    """Slow salted password comparison.

    Calls are CPU-bound and block; the HTTP layer runs them from sync
    route handlers, which FastAPI executes in its worker thread pool.
    """

    def hash(self, plaintext: str) -> str:
        return hash_password(plaintext)

    def verify(self, plaintext: str, stored_hash: str) -> bool:
        return verify_password(plaintext, stored_hash)
