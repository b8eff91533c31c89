"""Thrift store import: upstream stores become Locations and Quests.

Repeated runs over the same upstream data converge: a store within
``import_dedupe_meters`` of a name-matching Location reuses it, and a quest
is only created for a Location that has none. Stores are processed one at a
time so a store sees the locations created for earlier stores in the run.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.config import Settings, get_settings
from questhunt.db.models import Location, Quest
from questhunt.errors import UpstreamError
from questhunt.locations.geo import haversine_m
from questhunt.locations.store_client import StoreClient
from questhunt.locations.sync_guard import SyncGuard

logger = logging.getLogger(__name__)

DEDUPE_CANDIDATE_LIMIT = 50
PREVIEW_SIZE = 5


@dataclass
class ImportOptions:
    dry_run: bool = False
    sync_if_stale: bool = True
    default_radius: int = 50
    create_quests: bool = True
    name: str | None = None


@dataclass
class StoreCandidate:
    name: str
    latitude: float
    longitude: float
    radius: int
    address: str | None = None
    description: str | None = None


def _as_float(value: Any) -> float | None:  # noqa: ANN401
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> str | None:  # noqa: ANN401
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def to_candidate(store: dict[str, Any], default_radius: int) -> StoreCandidate | None:
    """Map an upstream store to a Location candidate; None without valid coordinates."""
    location = store.get("location") or {}
    if not isinstance(location, dict):
        return None
    lat = _as_float(location.get("lat"))
    lng = _as_float(location.get("lng"))
    if lat is None or lng is None or not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        return None
    name = _text(store.get("storeName")) or _text(store.get("name"))
    if name is None:
        return None
    return StoreCandidate(
        name=name,
        latitude=lat,
        longitude=lng,
        radius=default_radius,
        address=_text(store.get("address")),
        description=_text(store.get("description")),
    )


def filter_stores(stores: list[dict[str, Any]], needle: str | None) -> list[dict[str, Any]]:
    """Case-insensitive substring match on store name or address."""
    if not needle or not needle.strip():
        return stores
    needle = needle.strip().casefold()
    matched = []
    for store in stores:
        haystack = " ".join(
            str(store.get(key) or "") for key in ("storeName", "name", "address")
        ).casefold()
        if needle in haystack:
            matched.append(store)
    return matched


def quest_description(candidate: StoreCandidate) -> str:
    if candidate.description and candidate.address:
        return f"{candidate.description} ({candidate.address})"
    if candidate.description:
        return candidate.description
    if candidate.address:
        return f"Visit {candidate.name} at {candidate.address}."
    return f"Visit {candidate.name} and find a hidden gem."


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def find_duplicate_location(
    db: AsyncSession,
    candidate: StoreCandidate,
    max_distance_m: float,
) -> Location | None:
    """Closest name-matching Location within ``max_distance_m`` (inclusive)."""
    result = await db.execute(
        select(Location)
        .where(Location.name.ilike(f"%{_escape_like(candidate.name)}%", escape="\\"))
        .order_by(Location.id)
        .limit(DEDUPE_CANDIDATE_LIMIT)
    )
    best: Location | None = None
    best_distance = math.inf
    for location in result.scalars():
        distance = haversine_m(
            candidate.latitude, candidate.longitude, location.latitude, location.longitude,
        )
        if distance <= max_distance_m and distance < best_distance:
            best, best_distance = location, distance
    return best


async def ensure_quest(
    db: AsyncSession,
    location_id: int,
    candidate: StoreCandidate,
    settings: Settings,
) -> bool:
    """Create the location's quest unless one exists. True when inserted."""
    existing = await db.execute(
        select(Quest.id).where(Quest.location_id == location_id).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        return False

    db.add(Quest(
        name=f"{candidate.name} Thrift Quest",
        description=quest_description(candidate),
        location_id=location_id,
        created_by=settings.system_user_id,
        points_achievable=settings.thrift_quest_points,
        is_active=True,
    ))
    await db.flush()
    return True


async def import_stores(
    db: AsyncSession,
    client: StoreClient,
    guard: SyncGuard,
    options: ImportOptions,
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """
    Run one import.

    Returns ``{"ok", "skipped"}`` without fetching when the guard says so,
    a preview for dry runs, otherwise the summary counts. Commits on
    success; an upstream failure writes nothing and leaves the last sync
    time alone.
    """
    settings = settings or get_settings()

    # No await between check and running(): the pair is atomic on the loop.
    skipped = guard.check(options.sync_if_stale)
    if skipped:
        logger.info("Store import skipped (%s)", skipped)
        return {"ok": True, "skipped": skipped}

    async with guard.running():
        try:
            fetched = await client.fetch_stores()
        except UpstreamError as e:
            guard.record_failure(e.message)
            raise
        stores = filter_stores(fetched, options.name)

        if options.dry_run:
            candidates = [
                c for c in (to_candidate(s, options.default_radius) for s in stores) if c
            ]
            return {
                "ok": True,
                "dry_run": True,
                "count": len(candidates),
                "preview": [asdict(c) for c in candidates[:PREVIEW_SIZE]],
            }

        processed = created_locations = skipped_existing = quests_created = 0
        for store in stores:
            processed += 1
            candidate = to_candidate(store, options.default_radius)
            if candidate is None:
                continue

            location = await find_duplicate_location(db, candidate, settings.import_dedupe_meters)
            if location is not None:
                skipped_existing += 1
            else:
                location = Location(
                    name=candidate.name,
                    latitude=candidate.latitude,
                    longitude=candidate.longitude,
                    radius=candidate.radius,
                )
                db.add(location)
                await db.flush()
                created_locations += 1

            if options.create_quests and await ensure_quest(db, location.id, candidate, settings):
                quests_created += 1

        await db.commit()
        last_sync = guard.mark_synced()

    logger.info(
        "Store import done: %d processed, %d created, %d existing, %d quests",
        processed, created_locations, skipped_existing, quests_created,
    )
    return {
        "ok": True,
        "stores_processed": processed,
        "created_locations": created_locations,
        "skipped_existing": skipped_existing,
        "quests_created": quests_created,
        "last_sync": last_sync,
    }
