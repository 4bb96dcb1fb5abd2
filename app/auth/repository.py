"""Repository for refresh token records (rotation, families, revocation)."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pymongo import ReturnDocument
from pymongo.database import Database

from app.auth.models import RefreshTokenRecord
from app.core.file_store import JsonFileCollection


class RefreshTokenStore(Protocol):
    """Persistence operations the auth service relies on."""

    def create(
        self, *, user_id: str, family: str, token_hash: str, expires_at: int
    ) -> RefreshTokenRecord: ...

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None: ...

    def mark_used(self, record_id: str) -> bool: ...

    def revoke_family(self, family: str) -> int: ...

    def revoke_all_for_user(self, user_id: str) -> int: ...

    def purge_expired(self, now: int | None = None) -> int: ...


def _to_document(record: RefreshTokenRecord) -> dict[str, Any]:
    doc = record.model_dump()
    # Native datetime copy drives the Mongo TTL index.
    doc["expires_at_dt"] = datetime.fromtimestamp(record.expires_at, tz=timezone.utc)
    return doc


class RefreshTokenRepository:
    """Refresh token store with MongoDB primary and file-store fallback."""

    COLLECTION = "auth_refresh_tokens"

    def __init__(self, app_root: Path, db: Database | None = None) -> None:
        """Initialize repository storage backends."""
        self._mongo = db[self.COLLECTION] if db is not None else None
        self._file = JsonFileCollection(
            app_root / "runtime" / "auth_store" / "refresh_tokens.json"
        )

    def create(
        self, *, user_id: str, family: str, token_hash: str, expires_at: int
    ) -> RefreshTokenRecord:
        """Persist a new unused record for the given family."""
        record = RefreshTokenRecord(
            record_id=uuid.uuid4().hex,
            token_hash=token_hash,
            user_id=user_id,
            family=family,
            is_used=False,
            expires_at=int(expires_at),
            created_at=int(time.time()),
        )
        if self._mongo is not None:
            self._mongo.insert_one(_to_document(record))
            return record

        with self._file.lock:
            items = self._file.read()
            items.append(record.model_dump())
            self._file.write(items)
        return record

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """Get record by token hash; expiry is judged by the caller."""
        if self._mongo is not None:
            doc = self._mongo.find_one(
                {"token_hash": token_hash}, {"_id": 0, "expires_at_dt": 0}
            )
            return RefreshTokenRecord.model_validate(doc) if doc else None

        with self._file.lock:
            for row in self._file.read():
                if row.get("token_hash") == token_hash:
                    return RefreshTokenRecord.model_validate(row)
        return None

    def mark_used(self, record_id: str) -> bool:
        """Flag record used only if it was unused; ``False`` means lost race."""
        if self._mongo is not None:
            updated = self._mongo.find_one_and_update(
                {"record_id": record_id, "is_used": False},
                {"$set": {"is_used": True}},
                projection={"_id": 1},
                return_document=ReturnDocument.AFTER,
            )
            return updated is not None

        with self._file.lock:
            items = self._file.read()
            for row in items:
                if row.get("record_id") == record_id:
                    if row.get("is_used"):
                        return False
                    row["is_used"] = True
                    self._file.write(items)
                    return True
        return False

    def revoke_family(self, family: str) -> int:
        """Delete every record of a family in one operation."""
        return self._delete_where("family", family)

    def revoke_all_for_user(self, user_id: str) -> int:
        """Delete every record owned by a user."""
        return self._delete_where("user_id", user_id)

    def purge_expired(self, now: int | None = None) -> int:
        """Delete records whose expiry has passed."""
        cutoff = int(time.time()) if now is None else int(now)
        if self._mongo is not None:
            return self._mongo.delete_many({"expires_at": {"$lt": cutoff}}).deleted_count

        with self._file.lock:
            items = self._file.read()
            kept = [row for row in items if int(row.get("expires_at") or 0) >= cutoff]
            if len(kept) != len(items):
                self._file.write(kept)
            return len(items) - len(kept)

    def _delete_where(self, field: str, value: str) -> int:
        if self._mongo is not None:
            return self._mongo.delete_many({field: value}).deleted_count

        with self._file.lock:
            items = self._file.read()
            kept = [row for row in items if row.get(field) != value]
            if len(kept) != len(items):
                self._file.write(kept)
            return len(items) - len(kept)
