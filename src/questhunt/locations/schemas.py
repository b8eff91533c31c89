"""Pydantic schemas for the store import endpoint."""

from __future__ import annotations

from questhunt.schemas import CamelModel


class LocationPreview(CamelModel):
    name: str
    latitude: float
    longitude: float
    radius: int
    address: str | None = None
    description: str | None = None


class ImportResponse(CamelModel):
    ok: bool
    skipped: str | None = None
    dry_run: bool | None = None
    count: int | None = None
    preview: list[LocationPreview] | None = None
    stores_processed: int | None = None
    created_locations: int | None = None
    skipped_existing: int | None = None
    quests_created: int | None = None
    last_sync: int | None = None
