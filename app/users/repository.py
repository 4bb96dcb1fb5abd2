"""Repositories for user accounts and pending registrations."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from app.core.file_store import JsonFileCollection
from app.users.models import PendingRegistration, User, normalize_email


class DuplicateEmailError(Exception):
    """Raised when a user with the same email already exists."""


class UserStore(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def find_by_id(self, user_id: str) -> User | None: ...

    def create(self, *, name: str, email: str, password_hash: str) -> User: ...


class PendingRegistrationStore(Protocol):
    def upsert(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        token_hash: str,
        expires_at: int,
    ) -> PendingRegistration: ...

    def find_by_hash(self, token_hash: str) -> PendingRegistration | None: ...

    def update_token(
        self, email: str, token_hash: str, expires_at: int
    ) -> PendingRegistration | None: ...

    def delete_by_id(self, pending_id: str) -> None: ...

    def purge_expired(self, now: int | None = None) -> int: ...


def _expiry_dt(expires_at: int) -> datetime:
    return datetime.fromtimestamp(expires_at, tz=timezone.utc)


class UserRepository:
    """User store with MongoDB primary and file-store fallback."""

    COLLECTION = "users"

    def __init__(self, app_root: Path, db: Database | None = None) -> None:
        """Initialize repository storage backends."""
        self._mongo = db[self.COLLECTION] if db is not None else None
        self._file = JsonFileCollection(app_root / "runtime" / "auth_store" / "users.json")

    def find_by_email(self, email: str) -> User | None:
        """Get user by case-insensitive email."""
        key = normalize_email(email)
        if self._mongo is not None:
            doc = self._mongo.find_one({"email": key}, {"_id": 0})
            return User.model_validate(doc) if doc else None

        with self._file.lock:
            for row in self._file.read():
                if normalize_email(str(row.get("email", ""))) == key:
                    return User.model_validate(row)
        return None

    def find_by_id(self, user_id: str) -> User | None:
        """Get user by id."""
        if self._mongo is not None:
            doc = self._mongo.find_one({"user_id": user_id}, {"_id": 0})
            return User.model_validate(doc) if doc else None

        with self._file.lock:
            for row in self._file.read():
                if row.get("user_id") == user_id:
                    return User.model_validate(row)
        return None

    def create(self, *, name: str, email: str, password_hash: str) -> User:
        """Insert a new user; raises ``DuplicateEmailError`` on email clash."""
        user = User(
            user_id=uuid.uuid4().hex,
            name=name.strip(),
            email=normalize_email(email),
            password_hash=password_hash,
            created_at=int(time.time()),
        )
        if self._mongo is not None:
            try:
                self._mongo.insert_one(user.model_dump())
            except DuplicateKeyError as exc:
                raise DuplicateEmailError(user.email) from exc
            return user

        with self._file.lock:
            items = self._file.read()
            if any(normalize_email(str(row.get("email", ""))) == user.email for row in items):
                raise DuplicateEmailError(user.email)
            items.append(user.model_dump())
            self._file.write(items)
        return user


class PendingRegistrationRepository:
    """Pending registration store keyed by email, with expiry filtering."""

    COLLECTION = "pending_registrations"

    def __init__(self, app_root: Path, db: Database | None = None) -> None:
        """Initialize repository storage backends."""
        self._mongo = db[self.COLLECTION] if db is not None else None
        self._file = JsonFileCollection(
            app_root / "runtime" / "auth_store" / "pending_registrations.json"
        )

    def upsert(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        token_hash: str,
        expires_at: int,
    ) -> PendingRegistration:
        """Create or fully replace the pending registration for an email."""
        key = normalize_email(email)
        fields: dict[str, Any] = {
            "name": name.strip(),
            "email": key,
            "password_hash": password_hash,
            "token_hash": token_hash,
            "expires_at": int(expires_at),
        }
        if self._mongo is not None:
            doc = self._mongo.find_one_and_update(
                {"email": key},
                {
                    "$set": {**fields, "expires_at_dt": _expiry_dt(fields["expires_at"])},
                    "$setOnInsert": {
                        "pending_id": uuid.uuid4().hex,
                        "created_at": int(time.time()),
                    },
                },
                projection={"_id": 0, "expires_at_dt": 0},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
            return PendingRegistration.model_validate(doc)

        with self._file.lock:
            items = self._file.read()
            existing = next(
                (row for row in items if normalize_email(str(row.get("email", ""))) == key),
                None,
            )
            if existing is None:
                existing = {"pending_id": uuid.uuid4().hex, "created_at": int(time.time())}
                items.append(existing)
            existing.update(fields)
            self._file.write(items)
            return PendingRegistration.model_validate(existing)

    def find_by_hash(self, token_hash: str) -> PendingRegistration | None:
        """Find a pending registration by token hash, ignoring expired ones."""
        now = int(time.time())
        if self._mongo is not None:
            doc = self._mongo.find_one(
                {"token_hash": token_hash, "expires_at": {"$gt": now}},
                {"_id": 0, "expires_at_dt": 0},
            )
            return PendingRegistration.model_validate(doc) if doc else None

        with self._file.lock:
            for row in self._file.read():
                if row.get("token_hash") == token_hash and int(row.get("expires_at") or 0) > now:
                    return PendingRegistration.model_validate(row)
        return None

    def update_token(
        self, email: str, token_hash: str, expires_at: int
    ) -> PendingRegistration | None:
        """Swap in a new verification token; ``None`` if nothing is pending."""
        key = normalize_email(email)
        if self._mongo is not None:
            doc = self._mongo.find_one_and_update(
                {"email": key},
                {
                    "$set": {
                        "token_hash": token_hash,
                        "expires_at": int(expires_at),
                        "expires_at_dt": _expiry_dt(int(expires_at)),
                    }
                },
                projection={"_id": 0, "expires_at_dt": 0},
                return_document=ReturnDocument.AFTER,
            )
            return PendingRegistration.model_validate(doc) if doc else None

        with self._file.lock:
            items = self._file.read()
            for row in items:
                if normalize_email(str(row.get("email", ""))) == key:
                    row["token_hash"] = token_hash
                    row["expires_at"] = int(expires_at)
                    self._file.write(items)
                    return PendingRegistration.model_validate(row)
        return None

    def delete_by_id(self, pending_id: str) -> None:
        """Delete a pending registration by id."""
        if self._mongo is not None:
            self._mongo.delete_one({"pending_id": pending_id})
            return

        with self._file.lock:
            items = self._file.read()
            kept = [row for row in items if row.get("pending_id") != pending_id]
            if len(kept) != len(items):
                self._file.write(kept)

    def purge_expired(self, now: int | None = None) -> int:
        """Delete pending registrations whose verification window closed."""
        cutoff = int(time.time()) if now is None else int(now)
        if self._mongo is not None:
            return self._mongo.delete_many({"expires_at": {"$lte": cutoff}}).deleted_count

        with self._file.lock:
            items = self._file.read()
            kept = [row for row in items if int(row.get("expires_at") or 0) > cutoff]
            if len(kept) != len(items):
                self._file.write(kept)
            return len(items) - len(kept)
