"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator
from functools import lru_cache

from questhunt.config import get_settings
from questhunt.database import get_session as _get_session
from questhunt.locations.store_client import StoreClient
from questhunt.locations.sync_guard import SyncGuard

get_db = _get_session


@lru_cache
def get_sync_guard() -> SyncGuard:
    """One import guard per process."""
    settings = get_settings()
    return SyncGuard(ttl_seconds=settings.import_sync_ttl_seconds)


async def get_store_client() -> AsyncGenerator[StoreClient, None]:
    """Yield a store API client bound to a fresh HTTP connection pool."""
    settings = get_settings()
    async with StoreClient(
        settings.thrift_api_base_url,
        timeout=settings.thrift_api_timeout_seconds,
    ) as client:
        yield client
