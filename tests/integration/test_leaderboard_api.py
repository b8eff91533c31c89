"""Integration tests for the public leaderboard endpoint."""

from datetime import datetime

import pytest

from questhunt.db.models import LeaderboardEntry
from tests.conftest import USER_1, USER_2, USER_3


async def seed_board(session_factory):
    rows = [
        LeaderboardEntry(user_id=USER_1, period_type="weekly", period_key="weekly:2024-05-13",
                         period_start=datetime(2024, 5, 13), period_end=datetime(2024, 5, 19, 23, 59, 59, 999000),
                         points=40, rank=2),
        LeaderboardEntry(user_id=USER_2, period_type="weekly", period_key="weekly:2024-05-13",
                         period_start=datetime(2024, 5, 13), period_end=datetime(2024, 5, 19, 23, 59, 59, 999000),
                         points=90, rank=1),
        LeaderboardEntry(user_id=USER_3, period_type="weekly", period_key="weekly:2024-05-13",
                         period_start=datetime(2024, 5, 13), period_end=datetime(2024, 5, 19, 23, 59, 59, 999000),
                         points=5, rank=None),
        LeaderboardEntry(user_id=USER_1, period_type="weekly", period_key="weekly:2024-05-06",
                         period_start=datetime(2024, 5, 6), period_end=datetime(2024, 5, 12, 23, 59, 59, 999000),
                         points=12, rank=1),
        LeaderboardEntry(user_id=USER_1, period_type="overall", period_key="overall", points=52, rank=1),
        LeaderboardEntry(user_id=USER_2, period_type="monthly", period_key="monthly:2024-05",
                         period_start=datetime(2024, 5, 1), period_end=datetime(2024, 5, 31, 23, 59, 59, 999000),
                         points=90, rank=3),
    ]
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()


class TestLeaderboardEndpoint:
    @pytest.mark.asyncio
    async def test_empty_is_list(self, client):
        response = await client.get("/api/leaderboard")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_sorted_by_rank_nulls_last(self, client, session_factory):
        await seed_board(session_factory)
        data = (await client.get("/api/leaderboard")).json()
        ranks = [row["rank"] for row in data]
        assert ranks == [1, 1, 1, 2, 3, None]
        assert ranks[:-1] == sorted(ranks[:-1])

    @pytest.mark.asyncio
    async def test_period_type_filter_is_case_insensitive(self, client, session_factory):
        await seed_board(session_factory)
        data = (await client.get("/api/leaderboard", params={"periodType": "WEEKLY"})).json()
        assert len(data) == 4
        assert {row["periodType"] for row in data} == {"weekly"}
        assert [row["rank"] for row in data] == [1, 1, 2, None]

    @pytest.mark.asyncio
    async def test_date_range_filter(self, client, session_factory):
        await seed_board(session_factory)
        data = (await client.get(
            "/api/leaderboard",
            params={"periodType": "weekly", "start": "2024-05-13T00:00:00Z", "end": "2024-05-20T00:00:00Z"},
        )).json()
        assert {row["userId"] for row in data} == {USER_1, USER_2, USER_3}
        assert all(row["periodStart"].startswith("2024-05-13") for row in data)

    @pytest.mark.asyncio
    async def test_user_filter_is_trimmed(self, client, session_factory):
        await seed_board(session_factory)
        data = (await client.get("/api/leaderboard", params={"userId": f"  {USER_2} "})).json()
        assert [row["userId"] for row in data] == [USER_2, USER_2]

    @pytest.mark.asyncio
    async def test_id_filter(self, client, session_factory):
        await seed_board(session_factory)
        first = (await client.get("/api/leaderboard")).json()[0]
        data = (await client.get("/api/leaderboard", params={"id": f" {first['id']} "})).json()
        assert [row["id"] for row in data] == [first["id"]]

    @pytest.mark.asyncio
    async def test_bad_timestamp_is_400(self, client):
        response = await client.get("/api/leaderboard", params={"start": "last tuesday"})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_overall_rows_have_null_bounds(self, client, session_factory):
        await seed_board(session_factory)
        data = (await client.get("/api/leaderboard", params={"periodType": "overall"})).json()
        assert data[0]["periodStart"] is None
        assert data[0]["periodEnd"] is None
