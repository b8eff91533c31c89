"""Public leaderboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.dependencies import get_db
from questhunt.leaderboard.schemas import LeaderboardEntryResponse
from questhunt.leaderboard.service import get_leaderboard

router = APIRouter(prefix="/api", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=list[LeaderboardEntryResponse])
async def read_leaderboard(
    period_type: str | None = Query(None, alias="periodType"),
    start: str | None = Query(None),
    end: str | None = Query(None),
    user_id: str | None = Query(None, alias="userId"),
    entry_id: str | None = Query(None, alias="id"),
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[LeaderboardEntryResponse]:
    rows = await get_leaderboard(
        db,
        period_type=period_type,
        start=start,
        end=end,
        user_id=user_id,
        entry_id=entry_id,
    )
    return [LeaderboardEntryResponse.model_validate(row) for row in rows]
