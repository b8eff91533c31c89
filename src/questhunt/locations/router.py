"""Thrift store import endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.auth.dependencies import get_principal
from questhunt.auth.principal import Principal
from questhunt.config import get_settings
from questhunt.dependencies import get_db, get_store_client, get_sync_guard
from questhunt.locations.import_service import ImportOptions, import_stores
from questhunt.locations.schemas import ImportResponse
from questhunt.locations.store_client import StoreClient
from questhunt.locations.sync_guard import SyncGuard

router = APIRouter(prefix="/api/locations", tags=["Locations"])


@router.post("/thrift/import", response_model=ImportResponse, response_model_exclude_none=True)
async def import_thrift_stores(
    dry_run: bool = Query(False, alias="dryRun"),
    sync_if_stale: bool = Query(True, alias="syncIfStale"),
    default_radius: int | None = Query(None, alias="defaultRadius", gt=0, le=10_000),
    create_quests: bool = Query(True, alias="createQuests"),
    name: str | None = Query(None),
    q: str | None = Query(None),
    principal: Principal = Depends(get_principal),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
    client: StoreClient = Depends(get_store_client),  # noqa: B008
    guard: SyncGuard = Depends(get_sync_guard),  # noqa: B008
) -> ImportResponse:
    """Import stores as Locations (and Quests); elevated writes, any signed-in caller."""
    settings = get_settings()
    options = ImportOptions(
        dry_run=dry_run,
        sync_if_stale=sync_if_stale,
        default_radius=default_radius or settings.import_default_radius_m,
        create_quests=create_quests,
        name=name or q,
    )
    result = await import_stores(db, client, guard, options, settings=settings)
    return ImportResponse.model_validate(result)
