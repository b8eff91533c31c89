"""Pydantic schemas for quest enrollment endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from questhunt.schemas import CamelModel


class EnrollRequest(CamelModel):
    quest_id: int | str | None = Field(None)


class QuestSummary(CamelModel):
    id: int
    name: str
    description: str | None = None
    collectible_id: int | None = None
    location_id: int
    points_achievable: int | None = None
    is_active: bool
    hunt_id: int | None = None


class UserQuestResponse(CamelModel):
    id: int
    user_id: str
    quest_id: int
    step: str
    is_complete: bool
    completed_at: datetime | None = None
    created_at: datetime | None = None


class UserQuestDetailResponse(UserQuestResponse):
    quest: QuestSummary | None = None


class CompleteResponse(CamelModel):
    ok: bool
    user_quest: UserQuestResponse
    awarded: int
