"""Pydantic schemas for private leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, Field

from questhunt.schemas import CamelModel


class CreateLeaderboardRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    cover_image: str | None = None
    period_type: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    is_active: bool = True


class UpdateLeaderboardRequest(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=2000)
    cover_image: str | None = None
    period_type: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    is_active: bool | None = None


class JoinLeaderboardRequest(CamelModel):
    invite_code: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("inviteCode", "invite_code", "code"),
    )


class InviteMemberRequest(CamelModel):
    user_id: str = Field(..., min_length=1, max_length=64)


class LeaderboardResponse(CamelModel):
    id: int
    owner_user_id: str
    name: str
    description: str | None = None
    cover_image: str | None = None
    period_type: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    is_active: bool
    created_at: datetime | None = None
    invite_code: str | None = None  # Only shown to members


class MemberResponse(CamelModel):
    leaderboard_id: int
    user_id: str
    role: str
    joined_at: datetime | None = None


class StandingResponse(CamelModel):
    user_id: str
    role: str
    points: int
    rank: int


class InviteCodeResponse(CamelModel):
    invite_code: str
