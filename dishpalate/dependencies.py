"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from dishpalate.config import get_settings
from dishpalate.db import DbClient, InMemoryDbClient, MongoDbClient, SqlDbClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None


def get_db_client() -> DbClient:
    """
    Return the process-wide DB client, creating it on first use.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _db_client = InMemoryDbClient()
    elif settings.mongodb_uri:
        _db_client = MongoDbClient(
            settings.mongodb_uri, database=settings.mongodb_database
        )
    elif settings.database_url:
        _db_client = SqlDbClient(settings.database_url)
    else:
        logger.warning("No MONGODB_URI or DATABASE_URL set; using in-memory store")
        _db_client = InMemoryDbClient()
    return _db_client


def close_db_client() -> None:
    global _db_client
    if _db_client:
        _db_client.close()
        _db_client = None
