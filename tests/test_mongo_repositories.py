from __future__ import annotations

import copy
import time
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from pymongo.errors import DuplicateKeyError

from app.auth.repository import RefreshTokenRepository
from app.users.repository import (
    DuplicateEmailError,
    PendingRegistrationRepository,
    UserRepository,
)

_OPERATORS = {
    "$lt": lambda left, right: left < right,
    "$lte": lambda left, right: left <= right,
    "$gt": lambda left, right: left > right,
}


def _matches(doc: dict[str, Any], query: dict[str, Any]) -> bool:
    for key, expected in query.items():
        value = doc.get(key)
        if isinstance(expected, dict):
            if value is None:
                return False
            if not all(_OPERATORS[op](value, arg) for op, arg in expected.items()):
                return False
        elif value != expected:
            return False
    return True


def _project(doc: dict[str, Any], projection: dict[str, int] | None) -> dict[str, Any]:
    result = copy.deepcopy(doc)
    for key, flag in (projection or {}).items():
        if not flag:
            result.pop(key, None)
    return result


@dataclass
class _DeleteResult:
    deleted_count: int


class _Collection:
    """Enough of a pymongo collection for equality and range filters."""

    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.unique: tuple[str, ...] = ()

    def insert_one(self, doc: dict[str, Any]) -> None:
        for key in self.unique:
            if any(row.get(key) == doc.get(key) for row in self.docs):
                raise DuplicateKeyError(f"duplicate {key}")
        self.docs.append({"_id": len(self.docs) + 1, **doc})

    def find_one(
        self, query: dict[str, Any], projection: dict[str, int] | None = None
    ) -> dict[str, Any] | None:
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find_one_and_update(
        self,
        query: dict[str, Any],
        update: dict[str, Any],
        projection: dict[str, int] | None = None,
        upsert: bool = False,
        return_document: Any = None,
    ) -> dict[str, Any] | None:
        target = next((doc for doc in self.docs if _matches(doc, query)), None)
        if target is None:
            if not upsert:
                return None
            target = {"_id": len(self.docs) + 1, **query, **update.get("$setOnInsert", {})}
            self.docs.append(target)
        target.update(update.get("$set", {}))
        return _project(target, projection)

    def delete_one(self, query: dict[str, Any]) -> None:
        for index, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[index]
                return

    def delete_many(self, query: dict[str, Any]) -> _DeleteResult:
        kept = [doc for doc in self.docs if not _matches(doc, query)]
        removed = len(self.docs) - len(kept)
        self.docs = kept
        return _DeleteResult(deleted_count=removed)


class _Database:
    def __init__(self) -> None:
        self.collections: dict[str, _Collection] = defaultdict(_Collection)

    def __getitem__(self, name: str) -> _Collection:
        return self.collections[name]


def _future() -> int:
    return int(time.time()) + 3600


def test_mongo_refresh_repository_marks_used_conditionally(tmp_path: Path) -> None:
    db = _Database()
    repo = RefreshTokenRepository(tmp_path, db)  # type: ignore[arg-type]
    record = repo.create(user_id="u1", family="f1", token_hash="h1", expires_at=_future())

    assert repo.mark_used(record.record_id) is True
    assert repo.mark_used(record.record_id) is False
    found = repo.find_by_hash("h1")
    assert found is not None and found.is_used is True
    assert "expires_at_dt" in db["auth_refresh_tokens"].docs[0]
    assert not (tmp_path / "runtime" / "auth_store" / "refresh_tokens.json").exists()


def test_mongo_refresh_repository_revocation_counts(tmp_path: Path) -> None:
    repo = RefreshTokenRepository(tmp_path, _Database())  # type: ignore[arg-type]
    repo.create(user_id="u1", family="f1", token_hash="h1", expires_at=_future())
    repo.create(user_id="u1", family="f1", token_hash="h2", expires_at=_future())
    repo.create(user_id="u1", family="f2", token_hash="h3", expires_at=int(time.time()) - 1)

    assert repo.revoke_family("f1") == 2
    assert repo.purge_expired() == 1
    assert repo.revoke_all_for_user("u1") == 0


def test_mongo_user_repository_maps_duplicate_key(tmp_path: Path) -> None:
    db = _Database()
    db["users"].unique = ("email",)
    repo = UserRepository(tmp_path, db)  # type: ignore[arg-type]
    repo.create(name="Alice", email="A@x.com", password_hash="h")

    with pytest.raises(DuplicateEmailError):
        repo.create(name="Alice", email="a@x.com", password_hash="h")
    found = repo.find_by_email("A@X.com")
    assert found is not None and found.name == "Alice"


def test_mongo_pending_repository_upsert_and_expiry(tmp_path: Path) -> None:
    db = _Database()
    repo = PendingRegistrationRepository(tmp_path, db)  # type: ignore[arg-type]

    first = repo.upsert(
        name="Alice", email="a@x.com", password_hash="p1", token_hash="t1", expires_at=_future()
    )
    second = repo.upsert(
        name="Alice", email="a@x.com", password_hash="p2", token_hash="t2", expires_at=_future()
    )

    assert len(db["pending_registrations"].docs) == 1
    assert second.pending_id == first.pending_id
    assert repo.find_by_hash("t1") is None
    assert repo.update_token("ghost@x.com", "t3", _future()) is None

    repo.update_token("a@x.com", "t3", int(time.time()) - 1)
    assert repo.find_by_hash("t3") is None
    assert repo.purge_expired() == 1
