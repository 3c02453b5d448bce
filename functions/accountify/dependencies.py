"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from accountify.config import get_settings
from accountify.db import DbClient, InMemoryDbClient, PostgresDbClient
from accountify.realtime import ChangeFeed, InMemoryChangeFeed, RedisChangeFeed
from accountify.storage import (
    DEFAULT_BUCKET,
    InMemoryStorageClient,
    S3StorageClient,
    StorageClient,
)

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_change_feed: ChangeFeed | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.info("Using in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not (
        settings.storage_bucket or settings.storage_endpoint
    ):
        logger.info("Using in-memory object storage")
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket or DEFAULT_BUCKET,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_change_feed() -> ChangeFeed:
    """
    Return a singleton change feed shared by publishers and websocket subscribers.
    """
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _change_feed = RedisChangeFeed(
            url=settings.redis_url,
            channel=settings.realtime_channel,
        )
    else:
        _change_feed = InMemoryChangeFeed()
    return _change_feed


def reset_backends() -> None:
    """Drop cached clients so the next call rebuilds them from settings."""
    global _db_client, _storage_client, _change_feed
    _db_client = None
    _storage_client = None
    _change_feed = None
