"""Store import arq worker: scheduled thrift store sync and rank refresh.

Schedule:
- Store import: every 15 minutes (skipped while the last sync is fresh)
- Leaderboard ranks: every 5 minutes
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from questhunt.config import get_settings
from questhunt.database import close_db, get_session_factory, init_db
from questhunt.leaderboard.ledger import refresh_ranks
from questhunt.leaderboard.periods import PERIOD_TYPES
from questhunt.locations.import_service import ImportOptions, import_stores
from questhunt.locations.store_client import StoreClient
from questhunt.locations.sync_guard import SyncGuard

logger = logging.getLogger(__name__)


async def import_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the DB pool and the store API client for the worker's lifetime."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["store_client"] = StoreClient(
        settings.thrift_api_base_url, timeout=settings.thrift_api_timeout_seconds,
    )
    ctx["sync_guard"] = SyncGuard(ttl_seconds=settings.import_sync_ttl_seconds)
    logger.info("Import worker started")


async def import_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    client: StoreClient | None = ctx.get("store_client")
    if client:
        await client.aclose()
    await close_db()
    logger.info("Import worker shut down")


async def sync_thrift_stores(ctx: dict) -> dict:  # type: ignore[type-arg]
    """Scheduled arq task: import stores unless the last sync is still fresh."""
    settings = get_settings()
    options = ImportOptions(
        sync_if_stale=True,
        default_radius=settings.import_default_radius_m,
        create_quests=True,
    )
    async with get_session_factory()() as db:
        result = await import_stores(
            db, ctx["store_client"], ctx["sync_guard"], options, settings=settings,
        )
    logger.info("Scheduled store import: %s", result)
    return result


async def refresh_leaderboard_ranks(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled arq task: recompute ranks for every current period."""
    ranked = 0
    async with get_session_factory()() as db:
        for period_type in PERIOD_TYPES:
            ranked += await refresh_ranks(db, period_type)
        await db.commit()
    return ranked


class ImportWorkerSettings:
    """arq worker settings for the store import scheduler."""

    functions = [sync_thrift_stores, refresh_leaderboard_ranks]
    cron_jobs = [
        cron(sync_thrift_stores, minute={0, 15, 30, 45}, run_at_startup=True),
        cron(refresh_leaderboard_ranks, minute=set(range(0, 60, 5))),
    ]
    on_startup = import_startup
    on_shutdown = import_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 2
    job_timeout = 300
    allow_abort_jobs = True
