"""Liveness, readiness and version endpoints.

``/ready`` reports what the quest API depends on: the database, the rate
limit store, and the state of the thrift store import (last successful
sync, runs in progress, last upstream failure).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.config import get_settings
from questhunt.dependencies import get_db, get_sync_guard
from questhunt.locations.sync_guard import SyncGuard, now_ms
from questhunt.redis_client import redis_status

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),  # noqa: B008
    guard: SyncGuard = Depends(get_sync_guard),  # noqa: B008
) -> dict[str, object]:
    """Ready when the database and Redis answer; the import state is informational."""
    settings = get_settings()
    checks: dict[str, object] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"

    checks["redis"] = await redis_status()

    import_state = guard.state()
    last_sync = guard.last_sync_ms
    import_state["stale"] = last_sync == 0 or now_ms() - last_sync >= guard.ttl_ms
    import_state["store_api"] = settings.thrift_api_base_url

    ready = checks["database"] == "ok" and checks["redis"] == "ok"
    return {
        "status": "ready" if ready else "degraded",
        "checks": checks,
        "store_import": import_state,
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
