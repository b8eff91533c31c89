"""Integration tests for private leaderboards and membership."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from questhunt.db.models import PrivateLeaderboard, PrivateLeaderboardMember
from questhunt.errors import Conflict, InvalidState, NotFound
from questhunt.leaderboard.ledger import add_points
from questhunt.private_leaderboards import service as plb_service
from questhunt.private_leaderboards.invite_codes import assign_invite_code
from tests.conftest import USER_1, USER_2, USER_3, auth_headers


def same_instant(a: str, b: str) -> bool:
    # SQLite hands back naive timestamps
    return datetime.fromisoformat(a).replace(tzinfo=None) == datetime.fromisoformat(b).replace(tzinfo=None)


async def create_board(client, owner=USER_1, **extra):
    response = await client.post(
        "/api/private-leaderboards", json={"name": "Office League", **extra}, headers=auth_headers(owner),
    )
    assert response.status_code == 201
    return response.json()


async def member_count(session_factory, leaderboard_id) -> int:
    async with session_factory() as session:
        return (await session.execute(
            select(func.count()).select_from(PrivateLeaderboardMember)
            .where(PrivateLeaderboardMember.leaderboard_id == leaderboard_id)
        )).scalar_one()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_adds_owner_member(self, client):
        board = await create_board(client)
        assert board["ownerUserId"] == USER_1
        assert len(board["inviteCode"]) == 8
        assert board["isActive"] is True

        members = (await client.get(
            f"/api/private-leaderboards/{board['id']}/members", headers=auth_headers(USER_1),
        )).json()
        assert [(m["userId"], m["role"]) for m in members] == [(USER_1, "owner")]

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_period_type(self, client):
        response = await client.post(
            "/api/private-leaderboards", json={"name": "X", "periodType": "hourly"}, headers=auth_headers(),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_list_owned_and_joined_without_duplicates(self, client):
        mine = await create_board(client, USER_1)
        theirs = await create_board(client, USER_2)
        await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": theirs["inviteCode"]}, headers=auth_headers(USER_1),
        )

        listed = (await client.get("/api/private-leaderboards", headers=auth_headers(USER_1))).json()
        assert sorted(b["id"] for b in listed) == sorted([mine["id"], theirs["id"]])

    @pytest.mark.asyncio
    async def test_invite_code_hidden_from_non_members(self, client):
        board = await create_board(client)
        seen = (await client.get(f"/api/private-leaderboards/{board['id']}", headers=auth_headers(USER_2))).json()
        assert seen["inviteCode"] is None
        owner_view = (await client.get(f"/api/private-leaderboards/{board['id']}", headers=auth_headers())).json()
        assert owner_view["inviteCode"] == board["inviteCode"]

    @pytest.mark.asyncio
    async def test_update_owner_only(self, client):
        board = await create_board(client)
        denied = await client.patch(
            f"/api/private-leaderboards/{board['id']}", json={"name": "Mine now"}, headers=auth_headers(USER_2),
        )
        assert denied.status_code == 403

        updated = await client.patch(
            f"/api/private-leaderboards/{board['id']}",
            json={"name": "Renamed", "periodType": "Weekly", "isActive": False},
            headers=auth_headers(USER_1),
        )
        assert updated.status_code == 200
        body = updated.json()
        assert body["name"] == "Renamed"
        assert body["periodType"] == "weekly"
        assert body["isActive"] is False

    @pytest.mark.asyncio
    async def test_delete_owner_only(self, client, session_factory):
        board = await create_board(client)
        denied = await client.delete(f"/api/private-leaderboards/{board['id']}", headers=auth_headers(USER_2))
        assert denied.status_code == 403

        deleted = await client.delete(f"/api/private-leaderboards/{board['id']}", headers=auth_headers(USER_1))
        assert deleted.status_code == 204
        missing = await client.get(f"/api/private-leaderboards/{board['id']}", headers=auth_headers(USER_1))
        assert missing.status_code == 404
        assert await member_count(session_factory, board["id"]) == 0

    @pytest.mark.asyncio
    async def test_regenerate_invite_code(self, client):
        board = await create_board(client)
        denied = await client.post(
            f"/api/private-leaderboards/{board['id']}/invite-code", headers=auth_headers(USER_2),
        )
        assert denied.status_code == 403

        rotated = await client.post(
            f"/api/private-leaderboards/{board['id']}/invite-code", headers=auth_headers(USER_1),
        )
        new_code = rotated.json()["inviteCode"]
        assert len(new_code) == 8

        old = await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        if new_code != board["inviteCode"]:
            assert old.status_code == 404


class TestJoin:
    @pytest.mark.asyncio
    async def test_join_is_case_insensitive_and_idempotent(self, client, session_factory):
        board = await create_board(client)
        first = await client.post(
            "/api/private-leaderboards/join",
            json={"inviteCode": board["inviteCode"].lower()},
            headers=auth_headers(USER_2),
        )
        assert first.status_code == 200
        assert first.json()["role"] == "member"

        second = await client.post(
            "/api/private-leaderboards/join", json={"code": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        assert second.status_code == 200
        assert same_instant(second.json()["joinedAt"], first.json()["joinedAt"])
        assert await member_count(session_factory, board["id"]) == 2

    @pytest.mark.asyncio
    async def test_unknown_code(self, client):
        response = await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": "ZZZZZZZZ"}, headers=auth_headers(USER_2),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_inactive_board(self, client):
        board = await create_board(client, isActive=False)
        response = await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    @pytest.mark.asyncio
    async def test_racing_join_converges_to_one_row(self, db, monkeypatch):
        board = await plb_service.create_leaderboard(db, USER_1, "Race Track")
        await db.commit()

        # Both joiners pass the membership pre-check before either inserts.
        first = await plb_service.add_member(db, board.id, USER_2)
        real_get_membership = plb_service.get_membership
        calls = {"n": 0}

        async def stale_precheck(session, leaderboard_id, user_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_get_membership(session, leaderboard_id, user_id)

        monkeypatch.setattr(plb_service, "get_membership", stale_precheck)
        second = await plb_service.join_by_invite_code(db, board.invite_code, USER_2)

        assert second.id == first.id
        count = (await db.execute(
            select(func.count()).select_from(PrivateLeaderboardMember)
            .where(PrivateLeaderboardMember.leaderboard_id == board.id)
        )).scalar_one()
        assert count == 2

    @pytest.mark.asyncio
    async def test_add_member_twice_returns_existing(self, db):
        board = await plb_service.create_leaderboard(db, USER_1, "Twice")
        a = await plb_service.add_member(db, board.id, USER_3)
        b = await plb_service.add_member(db, board.id, USER_3)
        assert a.id == b.id

    @pytest.mark.asyncio
    async def test_join_service_errors(self, db):
        with pytest.raises(NotFound):
            await plb_service.join_by_invite_code(db, "NOPE1234", USER_2)
        board = await plb_service.create_leaderboard(db, USER_1, "Closed", is_active=False)
        with pytest.raises(InvalidState):
            await plb_service.join_by_invite_code(db, board.invite_code, USER_2)


class TestMembers:
    @pytest.mark.asyncio
    async def test_owner_invites_and_lists(self, client):
        board = await create_board(client)
        invited = await client.post(
            f"/api/private-leaderboards/{board['id']}/members", json={"userId": USER_3}, headers=auth_headers(USER_1),
        )
        assert invited.status_code == 201

        denied = await client.post(
            f"/api/private-leaderboards/{board['id']}/members", json={"userId": USER_2}, headers=auth_headers(USER_3),
        )
        assert denied.status_code == 403
        listing = await client.get(f"/api/private-leaderboards/{board['id']}/members", headers=auth_headers(USER_3))
        assert listing.status_code == 403

    @pytest.mark.asyncio
    async def test_member_can_leave(self, client, session_factory):
        board = await create_board(client)
        await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        left = await client.delete(
            f"/api/private-leaderboards/{board['id']}/members/{USER_2}", headers=auth_headers(USER_2),
        )
        assert left.status_code == 204
        assert await member_count(session_factory, board["id"]) == 1

    @pytest.mark.asyncio
    async def test_member_cannot_remove_others(self, client):
        board = await create_board(client)
        for user in (USER_2, USER_3):
            await client.post(
                "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(user),
            )
        response = await client.delete(
            f"/api/private-leaderboards/{board['id']}/members/{USER_3}", headers=auth_headers(USER_2),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_removes_member_but_not_self(self, client):
        board = await create_board(client)
        await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        removed = await client.delete(
            f"/api/private-leaderboards/{board['id']}/members/{USER_2}", headers=auth_headers(USER_1),
        )
        assert removed.status_code == 204
        self_remove = await client.delete(
            f"/api/private-leaderboards/{board['id']}/members/{USER_1}", headers=auth_headers(USER_1),
        )
        assert self_remove.status_code == 409


class TestStandings:
    @pytest.mark.asyncio
    async def test_members_ranked_by_points(self, client, session_factory):
        board = await create_board(client)
        await client.post(
            "/api/private-leaderboards/join", json={"inviteCode": board["inviteCode"]}, headers=auth_headers(USER_2),
        )
        async with session_factory() as session:
            await add_points(session, USER_2, 25, now=datetime.now(timezone.utc))
            await add_points(session, USER_3, 99, now=datetime.now(timezone.utc))  # not a member
            await session.commit()

        response = await client.get(
            f"/api/private-leaderboards/{board['id']}/standings", headers=auth_headers(USER_1),
        )
        assert response.status_code == 200
        assert [(s["userId"], s["points"], s["rank"]) for s in response.json()] == [
            (USER_2, 25, 1),
            (USER_1, 0, 2),
        ]

    @pytest.mark.asyncio
    async def test_non_member_forbidden(self, client):
        board = await create_board(client)
        response = await client.get(
            f"/api/private-leaderboards/{board['id']}/standings", headers=auth_headers(USER_3),
        )
        assert response.status_code == 403
        assert response.json() == {"error": "forbidden", "detail": "Not a member"}


class TestInviteCodeAllocation:
    @pytest.mark.asyncio
    async def test_collision_draws_again(self, db):
        first = await plb_service.create_leaderboard(db, USER_1, "First")
        codes = iter([first.invite_code, "NEWCODE1"])

        board = PrivateLeaderboard(owner_user_id=USER_2, name="Second", is_active=True)
        code = await assign_invite_code(db, board, generate=lambda: next(codes))

        assert code == "NEWCODE1"
        assert board.invite_code == "NEWCODE1"
        assert board.id is not None
        assert board.name == "Second"

    @pytest.mark.asyncio
    async def test_rotation_collision_keeps_row_loaded(self, db):
        taken = await plb_service.create_leaderboard(db, USER_1, "Taken")
        board = await plb_service.create_leaderboard(db, USER_2, "Rotating")
        codes = iter([taken.invite_code, "ROTATED9"])

        await assign_invite_code(db, board, generate=lambda: next(codes))
        assert board.invite_code == "ROTATED9"
        assert board.owner_user_id == USER_2

    @pytest.mark.asyncio
    async def test_gives_up_with_conflict(self, db):
        taken = await plb_service.create_leaderboard(db, USER_1, "Taken")
        board = PrivateLeaderboard(owner_user_id=USER_2, name="Unlucky", is_active=True)
        with pytest.raises(Conflict):
            await assign_invite_code(db, board, generate=lambda: taken.invite_code)

    @pytest.mark.asyncio
    async def test_join_with_separator(self, db):
        board = await plb_service.create_leaderboard(db, USER_1, "Typed")
        code = board.invite_code
        member = await plb_service.join_by_invite_code(db, f"{code[:4].lower()}-{code[4:]}", USER_2)
        assert member.leaderboard_id == board.id

    @pytest.mark.asyncio
    async def test_malformed_code_is_not_found(self, db):
        with pytest.raises(NotFound):
            await plb_service.join_by_invite_code(db, "not a code at all", USER_2)
