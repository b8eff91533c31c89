"""Leaderboard period boundaries.

All bounds are UTC. Weekly periods run Monday 00:00:00.000 through Sunday
23:59:59.999; monthly periods run from the 1st through the last day of the
month; the overall period has no bounds. Bounds carry millisecond precision
so that ``end - start`` is a whole number of milliseconds minus one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

PERIOD_TYPES = ("weekly", "monthly", "overall")

_LAST_MS = timedelta(milliseconds=1)


@dataclass(frozen=True)
class Period:
    period_type: str
    period_key: str
    period_start: datetime | None
    period_end: datetime | None


def normalize_period_type(period_type: str | None) -> str:
    """Lower-case a period type; unknown or empty values mean 'overall'."""
    value = (period_type or "").strip().lower()
    return value if value in PERIOD_TYPES else "overall"


def get_week_start(now: datetime) -> datetime:
    """Get Monday 00:00:00 UTC of the week containing ``now``."""
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start - timedelta(days=day_start.weekday())


def get_month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_next_month_start(now: datetime) -> datetime:
    month_start = get_month_start(now)
    if month_start.month == 12:
        return month_start.replace(year=month_start.year + 1, month=1)
    return month_start.replace(month=month_start.month + 1)


def current_period(period_type: str | None, now: datetime | None = None) -> Period:
    """
    Bounds of the period containing ``now`` (defaults to the wall clock).

    Naive datetimes are treated as UTC.
    """
    kind = normalize_period_type(period_type)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    else:
        now = now.astimezone(timezone.utc)

    if kind == "weekly":
        start = get_week_start(now)
        end = start + timedelta(days=7) - _LAST_MS
        return Period(kind, f"weekly:{start:%Y-%m-%d}", start, end)

    if kind == "monthly":
        start = get_month_start(now)
        # Day 0 of next month: last instant of this one.
        end = get_next_month_start(now) - _LAST_MS
        return Period(kind, f"monthly:{start:%Y-%m}", start, end)

    return Period("overall", "overall", None, None)


def current_periods(now: datetime | None = None) -> list[Period]:
    """All periods a point award lands in."""
    return [current_period(kind, now) for kind in PERIOD_TYPES]
