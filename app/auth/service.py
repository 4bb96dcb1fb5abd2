"""Authentication service: login, refresh rotation, logout and email verification."""

from __future__ import annotations

import logging
import time

from app.auth.credentials import CredentialVerifier
from app.auth.errors import (
    AlreadyVerified,
    Conflict,
    Expired,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidToken,
    ReplayDetected,
    UserNotFound,
)
from app.auth.models import AccessClaims, AuthSession, TokenPair, UserSummary
from app.auth.repository import RefreshTokenStore
from app.auth.tokens import TokenCodec
from app.core.config import AuthConfig
from app.core.logging import redact_email
from app.core.security import generate_opaque_token
from app.notifications.email import EmailSender
from app.users.models import PendingRegistration, User, normalize_email
from app.users.repository import (
    DuplicateEmailError,
    PendingRegistrationStore,
    UserStore,
)

LOGGER = logging.getLogger(__name__)


class AuthService:
    """Token lifecycle and registration protocol on top of the stores.

    Refresh tokens are grouped into families, one per login. Every
    successful refresh marks the presented record used and issues a new
    record in the same family; presenting a used record again revokes the
    whole family.

    Store and email failures propagate unchanged; only the ``AuthError``
    taxonomy is raised for protocol outcomes.
    """

    def __init__(
        self,
        *,
        config: AuthConfig,
        users: UserStore,
        pending: PendingRegistrationStore,
        refresh_tokens: RefreshTokenStore,
        codec: TokenCodec,
        credentials: CredentialVerifier,
        email_sender: EmailSender,
    ) -> None:
        """Initialize service dependencies."""
        self._config = config
        self._users = users
        self._pending = pending
        self._refresh_tokens = refresh_tokens
        self._codec = codec
        self._credentials = credentials
        self._email_sender = email_sender
        # Checked against when the email is unknown so both failures cost one hash.
        self._dummy_password_hash = credentials.hash(generate_opaque_token(16))

    def login(self, email: str, password: str) -> AuthSession:
        """Authenticate credentials and start a new refresh token family."""
        user = self._users.find_by_email(normalize_email(email))
        stored_hash = user.password_hash if user is not None else self._dummy_password_hash
        password_ok = self._credentials.verify(password, stored_hash)
        if user is None or not password_ok:
            raise InvalidCredentials()

        family = self._codec.new_family_id()
        pair = self._issue_pair(user, family)
        LOGGER.info("login_succeeded", extra={"user_id": user.user_id, "family": family})
        return AuthSession(
            **pair.model_dump(),
            user=UserSummary(id=user.user_id, name=user.name, email=user.email),
        )

    def refresh_tokens(self, refresh_token: str) -> TokenPair:
        """Validate refresh token, rotate it within its family, issue a new pair."""
        try:
            self._codec.verify_refresh_token(refresh_token)
        except InvalidToken as exc:
            raise InvalidOrExpiredToken("Invalid or expired refresh token") from exc

        record = self._refresh_tokens.find_by_hash(self._codec.hash(refresh_token))
        if record is None:
            raise InvalidToken()

        if record.is_used:
            self._revoke_family(record.family, reason="replay")
            LOGGER.warning(
                "refresh_replay_detected",
                extra={"user_id": record.user_id, "family": record.family},
            )
            raise ReplayDetected()

        if record.expires_at < int(time.time()):
            self._revoke_family(record.family, reason="expired")
            raise Expired()

        if not self._refresh_tokens.mark_used(record.record_id):
            # Another request rotated this token between our read and write.
            self._revoke_family(record.family, reason="concurrent_replay")
            LOGGER.warning(
                "refresh_replay_detected",
                extra={"user_id": record.user_id, "family": record.family},
            )
            raise ReplayDetected()

        user = self._users.find_by_id(record.user_id)
        if user is None:
            raise UserNotFound()

        pair = self._issue_pair(user, record.family)
        if self._refresh_tokens.find_by_hash(record.token_hash) is None:
            # A concurrent replay revoked the family while this rotation was in
            # flight; the record just issued must not outlive that revocation.
            self._revoke_family(record.family, reason="revoked_during_rotation")
            LOGGER.warning(
                "refresh_replay_detected",
                extra={"user_id": record.user_id, "family": record.family},
            )
            raise ReplayDetected()
        LOGGER.info(
            "refresh_rotated", extra={"user_id": user.user_id, "family": record.family}
        )
        return pair

    def logout(self, refresh_token: str) -> None:
        """Revoke the family of the given token; unknown tokens are ignored."""
        if not refresh_token:
            return
        record = self._refresh_tokens.find_by_hash(self._codec.hash(refresh_token))
        if record is None:
            return
        self._revoke_family(record.family, reason="logout")

    def logout_all(self, user_id: str) -> int:
        """Revoke every refresh token of a user across all families."""
        count = self._refresh_tokens.revoke_all_for_user(user_id)
        LOGGER.info("user_sessions_revoked", extra={"user_id": user_id, "count": count})
        return count

    def verify_access_token(self, token: str) -> AccessClaims:
        """Validate access token and return normalized user claims."""
        payload = self._codec.verify_access_token(token)
        return AccessClaims(
            user_id=str(payload.get("sub") or ""),
            email=str(payload.get("email") or ""),
        )

    def register(self, name: str, email: str, password: str) -> PendingRegistration:
        """Hash the password and start (or restart) email verification."""
        normalized = normalize_email(email)
        if self._users.find_by_email(normalized) is not None:
            raise Conflict("User already exists")
        password_hash = self._credentials.hash(password)
        return self.create_pending_registration(name, normalized, password_hash)

    def create_pending_registration(
        self, name: str, email: str, password_hash: str
    ) -> PendingRegistration:
        """Upsert a pending registration and email its verification link.

        A repeated registration for the same email replaces the previous
        token and password, so only the newest link can verify.
        """
        normalized = normalize_email(email)
        raw_token = generate_opaque_token()
        pending = self._pending.upsert(
            name=name,
            email=normalized,
            password_hash=password_hash,
            token_hash=self._codec.hash(raw_token),
            expires_at=self._verification_expiry(),
        )
        self._email_sender.send_verification_email(normalized, raw_token)
        LOGGER.info("registration_pending", extra={"email": redact_email(normalized)})
        return pending

    def verify_email(self, raw_token: str) -> User:
        """Promote a pending registration to a user account.

        The promotion is two separate writes (create user, delete pending).
        A crash in between leaves an orphaned pending record that stops
        matching once it expires and is removed by the reaper.
        """
        pending = self._pending.find_by_hash(self._codec.hash(raw_token))
        if pending is None:
            raise InvalidOrExpiredToken("Invalid or expired verification token")

        if self._users.find_by_email(pending.email) is not None:
            self._pending.delete_by_id(pending.pending_id)
            raise Conflict()

        try:
            user = self._users.create(
                name=pending.name,
                email=pending.email,
                password_hash=pending.password_hash,
            )
        except DuplicateEmailError as exc:
            self._pending.delete_by_id(pending.pending_id)
            raise Conflict() from exc

        self._pending.delete_by_id(pending.pending_id)
        LOGGER.info("email_verified", extra={"user_id": user.user_id})
        return user

    def resend_verification_email(self, email: str) -> None:
        """Send a fresh link if a registration is pending; silent otherwise."""
        normalized = normalize_email(email)
        if self._users.find_by_email(normalized) is not None:
            raise AlreadyVerified()

        raw_token = generate_opaque_token()
        pending = self._pending.update_token(
            normalized, self._codec.hash(raw_token), self._verification_expiry()
        )
        if pending is None:
            return
        self._email_sender.send_verification_email(normalized, raw_token)
        LOGGER.info("verification_resent", extra={"email": redact_email(normalized)})

    def check_verification_status(self, email: str) -> bool:
        """Return whether a verified account exists for the email."""
        return self._users.find_by_email(normalize_email(email)) is not None

    def _issue_pair(self, user: User, family: str) -> TokenPair:
        access_token = self._codec.issue_access_token(user.user_id, user.email)
        refresh_token = self._codec.issue_refresh_token(user.user_id, family)
        self._refresh_tokens.create(
            user_id=user.user_id,
            family=family,
            token_hash=self._codec.hash(refresh_token),
            expires_at=int(time.time()) + self._config.refresh_token_ttl_seconds,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self._config.access_token_ttl_seconds,
        )

    def _revoke_family(self, family: str, *, reason: str) -> None:
        count = self._refresh_tokens.revoke_family(family)
        LOGGER.info(
            "family_revoked", extra={"family": family, "count": count, "reason": reason}
        )

    def _verification_expiry(self) -> int:
        return int(time.time()) + self._config.verification_token_ttl_seconds
