"""Public leaderboard queries."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.db.models import LeaderboardEntry
from questhunt.errors import InvalidInput


def parse_timestamp(value: str, field: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidInput(f"{field} must be an ISO-8601 timestamp") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


async def get_leaderboard(
    db: AsyncSession,
    *,
    period_type: str | None = None,
    start: str | None = None,
    end: str | None = None,
    user_id: str | None = None,
    entry_id: str | None = None,
) -> Sequence[LeaderboardEntry]:
    """
    Filtered leaderboard rows, best rank first.

    Unranked rows sort after ranked ones, then by points descending.
    """
    stmt = select(LeaderboardEntry)

    if period_type and period_type.strip():
        stmt = stmt.where(func.lower(LeaderboardEntry.period_type) == period_type.strip().lower())
    if entry_id and entry_id.strip():
        try:
            stmt = stmt.where(LeaderboardEntry.id == int(entry_id.strip()))
        except ValueError as e:
            raise InvalidInput("id must be an integer") from e
    if user_id and user_id.strip():
        stmt = stmt.where(LeaderboardEntry.user_id == user_id.strip())
    if start and start.strip():
        stmt = stmt.where(LeaderboardEntry.period_start >= parse_timestamp(start, "start"))
    if end and end.strip():
        stmt = stmt.where(LeaderboardEntry.period_end <= parse_timestamp(end, "end"))

    stmt = stmt.order_by(
        LeaderboardEntry.rank.asc().nulls_last(),
        LeaderboardEntry.points.desc(),
        LeaderboardEntry.id.asc(),
    )
    result = await db.execute(stmt)
    return result.scalars().all()
