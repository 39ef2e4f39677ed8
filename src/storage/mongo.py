"""MongoDB connection helper."""
from __future__ import annotations

import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from src import config

logger = logging.getLogger(__name__)


def connect_database(
    uri: Optional[str] = None, *, timeout_ms: Optional[int] = None
) -> Optional[Database]:
    """Connect to MongoDB and return the default database, or ``None``.

    The server is pinged once; an unreachable server is reported as ``None``
    so the caller can switch to in-memory storage explicitly instead of
    retrying on every request.
    """

    uri = uri or config.MONGODB_URI
    timeout_ms = timeout_ms or config.MONGODB_TIMEOUT_MS
    logger.info("Connecting to MongoDB…")
    try:
        client: MongoClient = MongoClient(uri, serverSelectionTimeoutMS=timeout_ms)
        client.admin.command("ping")
        database = client.get_default_database(default="event-feedback")
    except PyMongoError as exc:
        logger.warning(
            "MongoDB unavailable (%s); continuing with in-memory storage.", exc
        )
        return None
    logger.info("Connected to MongoDB database '%s'", database.name)
    return database
