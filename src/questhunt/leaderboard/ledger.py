"""Points ledger: add a non-negative delta to the caller's current periods.

The preferred path is the ``lb_add_points`` database function, which
upserts-and-increments the weekly, monthly and overall rows in one call.
Where it is missing (SQLite, a database without the migration) or fails,
the ledger falls back to read, then insert-or-guarded-update per period.
The fallback is not linearizable under concurrent writers to the same
user's rows; the guarded update retries a bounded number of times.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.db.models import LeaderboardEntry
from questhunt.errors import Conflict
from questhunt.leaderboard.periods import Period, current_period, current_periods

logger = logging.getLogger(__name__)

FALLBACK_MAX_ATTEMPTS = 3


class LedgerUnavailable(Exception):
    """The atomic increment function cannot be used on this database."""


def parse_points(value: Any) -> int:  # noqa: ANN401
    """Coerce a point value to a non-negative int; unparseable means 0."""
    if isinstance(value, bool):
        return 0
    try:
        points = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            points = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return 0
    return max(0, points)


async def add_points(
    db: AsyncSession,
    user_id: str,
    points: Any,  # noqa: ANN401
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Credit ``points`` to the user's current weekly, monthly and overall rows.

    Returns ``{"ok": True, "method": "rpc" | "fallback", "points": delta}``.
    Does not commit; the caller owns the transaction.
    """
    delta = parse_points(points)
    try:
        await _add_points_rpc(db, user_id, delta)
        method = "rpc"
    except (LedgerUnavailable, DBAPIError) as e:
        logger.info("lb_add_points unavailable (%s), using fallback", e)
        await _add_points_fallback(db, user_id, delta, now=now)
        method = "fallback"

    logger.info("Awarded %d points to user %s via %s", delta, user_id, method)
    return {"ok": True, "method": method, "points": delta}


async def _add_points_rpc(db: AsyncSession, user_id: str, delta: int) -> None:
    if db.get_bind().dialect.name != "postgresql":
        raise LedgerUnavailable("lb_add_points requires PostgreSQL")
    # Savepoint so a missing function does not abort the outer transaction.
    async with db.begin_nested():
        await db.execute(
            text("SELECT lb_add_points(:user_id, :points)"),
            {"user_id": user_id, "points": delta},
        )


async def _add_points_fallback(
    db: AsyncSession,
    user_id: str,
    delta: int,
    *,
    now: datetime | None = None,
) -> None:
    for period in current_periods(now):
        await _credit_period(db, user_id, period, delta)


async def _credit_period(db: AsyncSession, user_id: str, period: Period, delta: int) -> None:
    for _ in range(FALLBACK_MAX_ATTEMPTS):
        row = (await db.execute(
            select(LeaderboardEntry.id, LeaderboardEntry.points).where(
                LeaderboardEntry.user_id == user_id,
                LeaderboardEntry.period_key == period.period_key,
            )
        )).one_or_none()

        if row is None:
            if await _insert_entry(db, user_id, period, delta):
                return
            # Lost the insert race; the row exists now.
            continue

        entry_id, seen_points = row
        result = await db.execute(
            update(LeaderboardEntry)
            .where(LeaderboardEntry.id == entry_id, LeaderboardEntry.points == seen_points)
            .values(points=seen_points + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return

    logger.warning(
        "Leaderboard row for user %s (%s) kept changing; gave up after %d attempts",
        user_id, period.period_key, FALLBACK_MAX_ATTEMPTS,
    )
    raise Conflict("leaderboard row changed concurrently", user_id=user_id, period=period.period_key)


async def _insert_entry(db: AsyncSession, user_id: str, period: Period, delta: int) -> bool:
    """Insert a fresh period row; False when another writer got there first."""
    try:
        async with db.begin_nested():
            db.add(LeaderboardEntry(
                user_id=user_id,
                period_type=period.period_type,
                period_key=period.period_key,
                period_start=period.period_start,
                period_end=period.period_end,
                points=delta,
            ))
            await db.flush()
    except IntegrityError:
        return False
    return True


async def refresh_ranks(
    db: AsyncSession,
    period_type: str,
    *,
    now: datetime | None = None,
) -> int:
    """
    Recompute dense ranks (1 = most points) for the current period.

    Returns the number of rows ranked.
    """
    period = current_period(period_type, now)
    rows = (await db.execute(
        select(LeaderboardEntry.id, LeaderboardEntry.points)
        .where(LeaderboardEntry.period_key == period.period_key)
        .order_by(LeaderboardEntry.points.desc(), LeaderboardEntry.id.asc())
    )).all()

    rank = 0
    previous: int | None = None
    for entry_id, points in rows:
        if points != previous:
            rank += 1
            previous = points
        await db.execute(
            update(LeaderboardEntry)
            .where(LeaderboardEntry.id == entry_id)
            .values(rank=rank)
            .execution_options(synchronize_session=False)
        )

    logger.info("Ranked %d rows for %s", len(rows), period.period_key)
    return len(rows)
