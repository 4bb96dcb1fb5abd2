"""Versioned MongoDB schema migrations for auth collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pymongo.database import Database

from app.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]


def _migration_01_core_indexes(db: Any) -> None:
    db["users"].create_index("email", unique=True)
    db["users"].create_index("user_id", unique=True)
    db["pending_registrations"].create_index("email", unique=True)
    db["pending_registrations"].create_index("pending_id", unique=True)
    db["pending_registrations"].create_index("token_hash")
    db["auth_refresh_tokens"].create_index("record_id", unique=True)
    db["auth_refresh_tokens"].create_index("token_hash", unique=True)
    db["auth_refresh_tokens"].create_index("family")
    db["auth_refresh_tokens"].create_index("user_id")


def _migration_02_expiry_ttl(db: Any) -> None:
    db["auth_refresh_tokens"].create_index(
        "expires_at_dt",
        expireAfterSeconds=0,
        name="idx_auth_refresh_tokens_expires_at_ttl",
    )
    db["pending_registrations"].create_index(
        "expires_at_dt",
        expireAfterSeconds=0,
        name="idx_pending_registrations_expires_at_ttl",
    )


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("01_core_indexes", _migration_01_core_indexes),
    ("02_expiry_ttl", _migration_02_expiry_ttl),
]


def apply_mongo_migrations(db: Database | None) -> list[str]:
    """Apply pending migrations and return the ids applied in this run."""
    if db is None:
        return []

    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
        LOGGER.info("mongo_migration_applied", extra={"migration_id": migration_id})
    return applied
