"""Ledger tests against PostgreSQL with the migrations applied.

These exercise the ``lb_add_points`` database function, which SQLite cannot
run. Set QH_TEST_DATABASE_URL (postgresql+asyncpg://...) to a throwaway
database to enable them; the tables are truncated before every test.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from questhunt.auth.principal import Access, Principal
from questhunt.db.models import LeaderboardEntry
from questhunt.leaderboard import ledger
from questhunt.leaderboard.ledger import add_points, refresh_ranks
from questhunt.leaderboard.periods import PERIOD_TYPES, current_period
from questhunt.quests import service as quest_service
from tests.conftest import USER_1, USER_2, seed_quest

DATABASE_URL = os.environ.get("QH_TEST_DATABASE_URL", "")
PROJECT_ROOT = Path(__file__).resolve().parents[2]

pytestmark = pytest.mark.skipif(
    not DATABASE_URL.startswith("postgresql"),
    reason="QH_TEST_DATABASE_URL not set to a PostgreSQL database",
)

_migrated = False


def _ensure_migrations() -> None:
    """Run ``alembic upgrade head`` once per session against the test database."""
    global _migrated  # noqa: PLW0603
    if _migrated:
        return
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=PROJECT_ROOT,
        env={**os.environ, "QH_DATABASE_URL": DATABASE_URL},
        check=True,
        capture_output=True,
    )
    _migrated = True


@pytest_asyncio.fixture
async def pg_sessions() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    _ensure_migrations()
    engine = create_async_engine(DATABASE_URL, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.execute(text(
            "TRUNCATE TABLE leaderboard, user_quests, user_hunts, quests, locations, hunts,"
            " private_leaderboard_members, private_leaderboards RESTART IDENTITY CASCADE"
        ))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def _rows(session: AsyncSession, user_id: str) -> dict[str, LeaderboardEntry]:
    result = await session.execute(select(LeaderboardEntry).where(LeaderboardEntry.user_id == user_id))
    return {row.period_type: row for row in result.scalars()}


class TestAddPointsFunction:
    @pytest.mark.asyncio
    async def test_migration_installs_function(self, pg_sessions):
        async with pg_sessions() as session:
            found = (await session.execute(
                text("SELECT count(*) FROM pg_proc WHERE proname = 'lb_add_points'")
            )).scalar_one()
        assert found == 1

    @pytest.mark.asyncio
    async def test_uses_database_function(self, pg_sessions):
        async with pg_sessions() as session:
            result = await add_points(session, USER_1, 10)
            await session.commit()
        assert result == {"ok": True, "method": "rpc", "points": 10}

    @pytest.mark.asyncio
    async def test_rows_match_python_periods(self, pg_sessions):
        async with pg_sessions() as session:
            await add_points(session, USER_1, 4)
            await session.commit()
            rows = await _rows(session, USER_1)

        assert set(rows) == set(PERIOD_TYPES)
        for period_type, row in rows.items():
            expected = current_period(period_type)
            assert row.period_key == expected.period_key
            assert row.period_start == expected.period_start
            assert row.period_end == expected.period_end
            assert row.points == 4

    @pytest.mark.asyncio
    async def test_increments_existing_rows(self, pg_sessions):
        async with pg_sessions() as session:
            await add_points(session, USER_1, 4)
            await add_points(session, USER_1, 6)
            await add_points(session, USER_1, -3)
            await session.commit()
            rows = await _rows(session, USER_1)
        assert {pt: row.points for pt, row in rows.items()} == {"weekly": 10, "monthly": 10, "overall": 10}

    @pytest.mark.asyncio
    async def test_function_and_fallback_share_rows(self, pg_sessions):
        async with pg_sessions() as session:
            await add_points(session, USER_1, 5)
            with patch.object(ledger, "_add_points_rpc", AsyncMock(side_effect=ledger.LedgerUnavailable("off"))):
                result = await add_points(session, USER_1, 2)
            await session.commit()
            rows = await _rows(session, USER_1)
        assert result["method"] == "fallback"
        assert len(rows) == 3
        assert all(row.points == 7 for row in rows.values())

    @pytest.mark.asyncio
    async def test_refresh_ranks_after_function_awards(self, pg_sessions):
        async with pg_sessions() as session:
            await add_points(session, USER_1, 3)
            await add_points(session, USER_2, 8)
            await session.commit()
            assert await refresh_ranks(session, "weekly") == 2
            await session.commit()
            ranks = {
                row.user_id: row.rank
                for row in (await session.execute(
                    select(LeaderboardEntry).where(LeaderboardEntry.period_type == "weekly")
                )).scalars()
            }
        assert ranks == {USER_2: 1, USER_1: 2}


class TestCompletionAward:
    @pytest.mark.asyncio
    async def test_completion_awards_through_function(self, pg_sessions):
        ids = await seed_quest(pg_sessions, points=15)
        access = Access.scoped_to(Principal(id=USER_1))

        async with pg_sessions() as session:
            user_quest = await quest_service.enroll(session, access, ids["quest_id"])
            await session.commit()

            fallback = AsyncMock()
            with patch.object(ledger, "_add_points_fallback", fallback):
                result = await quest_service.complete(session, access, user_quest.id)
            await session.commit()
            rows = await _rows(session, USER_1)

        fallback.assert_not_awaited()
        assert result["awarded"] == 15
        assert result["user_quest"].is_complete is True
        assert {pt: row.points for pt, row in rows.items()} == {"weekly": 15, "monthly": 15, "overall": 15}
