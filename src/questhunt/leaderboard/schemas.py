"""Pydantic schemas for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from questhunt.schemas import CamelModel


class LeaderboardEntryResponse(CamelModel):
    id: int
    user_id: str
    period_type: str
    period_start: datetime | None = None
    period_end: datetime | None = None
    points: int
    rank: int | None = None
