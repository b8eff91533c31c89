"""Pydantic schemas for hunt progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from questhunt.schemas import CamelModel


class HuntSummary(CamelModel):
    id: int
    name: str
    description: str
    question: str
    time_limit: int | None = None


class UserHuntResponse(CamelModel):
    id: int
    user_id: str
    hunt_id: int
    is_active: bool
    time_limit: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    hunt: HuntSummary | None = None


class CheckAnswerRequest(CamelModel):
    answer: str = Field(..., min_length=1, max_length=512)


class CheckAnswerResponse(CamelModel):
    correct: bool
    user_hunt: UserHuntResponse
