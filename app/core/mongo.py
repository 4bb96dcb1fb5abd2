"""MongoDB connection bootstrap shared by repositories."""

from __future__ import annotations

import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from app.core.config import StorageConfig

LOGGER = logging.getLogger(__name__)


def connect_mongo(config: StorageConfig) -> Database | None:
    """Return a pinged database handle, or ``None`` when Mongo is not configured.

    An unreachable server is logged and treated as "not configured" so the
    JSON-file fallback store takes over.
    """
    if not config.mongo_uri:
        return None
    client: MongoClient = MongoClient(config.mongo_uri, serverSelectionTimeoutMS=3000)
    try:
        client.admin.command("ping")
    except PyMongoError:
        LOGGER.warning("mongo_unavailable_using_file_store", exc_info=True)
        client.close()
        return None
    return client[config.mongo_db]
