"""Private leaderboard business logic.

Rules:
- The creator owns the board and is its first member (role ``owner``)
- Invite codes are server-generated, 8-char A-Z0-9
- Only the owner may update, delete, invite, list members or rotate the code
- A member may leave; the owner may remove anyone but themselves
- Standings are visible to members only
- Membership inserts are conflict tolerant: a duplicate (board, user)
  insert returns the existing row
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.db.models import LeaderboardEntry, PrivateLeaderboard, PrivateLeaderboardMember
from questhunt.errors import Forbidden, InvalidInput, InvalidState, NotFound
from questhunt.leaderboard.periods import PERIOD_TYPES, current_period
from questhunt.private_leaderboards.invite_codes import (
    assign_invite_code,
    is_well_formed,
    normalize_invite_code,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name",
    "description",
    "cover_image",
    "period_type",
    "period_start",
    "period_end",
    "is_active",
)


@dataclass
class Standing:
    user_id: str
    role: str
    points: int
    rank: int


def _check_period_type(period_type: str | None) -> str | None:
    if period_type is None:
        return None
    value = period_type.strip().lower()
    if value not in PERIOD_TYPES:
        raise InvalidInput(f"periodType must be one of {', '.join(PERIOD_TYPES)}")
    return value


async def get_leaderboard(db: AsyncSession, leaderboard_id: int) -> PrivateLeaderboard | None:
    result = await db.execute(
        select(PrivateLeaderboard).where(PrivateLeaderboard.id == leaderboard_id)
    )
    return result.scalar_one_or_none()


async def get_owner_user_id(db: AsyncSession, leaderboard_id: int) -> str | None:
    result = await db.execute(
        select(PrivateLeaderboard.owner_user_id).where(PrivateLeaderboard.id == leaderboard_id)
    )
    return result.scalar_one_or_none()


async def get_membership(
    db: AsyncSession,
    leaderboard_id: int,
    user_id: str,
) -> PrivateLeaderboardMember | None:
    result = await db.execute(
        select(PrivateLeaderboardMember).where(
            PrivateLeaderboardMember.leaderboard_id == leaderboard_id,
            PrivateLeaderboardMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_board(db: AsyncSession, leaderboard_id: int) -> PrivateLeaderboard:
    board = await get_leaderboard(db, leaderboard_id)
    if board is None:
        raise NotFound("Leaderboard not found")
    return board


async def _require_owner(db: AsyncSession, leaderboard_id: int, user_id: str, action: str) -> PrivateLeaderboard:
    board = await _require_board(db, leaderboard_id)
    if board.owner_user_id != user_id:
        raise Forbidden(f"Only owner can {action}")
    return board


async def create_leaderboard(
    db: AsyncSession,
    owner_id: str,
    name: str,
    *,
    description: str | None = None,
    cover_image: str | None = None,
    period_type: str | None = None,
    period_start: Any = None,  # noqa: ANN401
    period_end: Any = None,  # noqa: ANN401
    is_active: bool = True,
) -> PrivateLeaderboard:
    """Create a board; the creator becomes its owner member."""
    if not name or not name.strip():
        raise InvalidInput("name is required")

    board = PrivateLeaderboard(
        owner_user_id=owner_id,
        name=name.strip(),
        description=description,
        cover_image=cover_image,
        period_type=_check_period_type(period_type),
        period_start=period_start,
        period_end=period_end,
        is_active=is_active,
    )
    await assign_invite_code(db, board)

    await add_member(db, board.id, owner_id, role="owner")
    logger.info("Private leaderboard created: %s (id=%d, owner=%s)", board.name, board.id, owner_id)
    return board


async def list_for_user(db: AsyncSession, user_id: str) -> Sequence[PrivateLeaderboard]:
    """Boards the user owns or belongs to, newest first, without duplicates."""
    member_of = select(PrivateLeaderboardMember.leaderboard_id).where(
        PrivateLeaderboardMember.user_id == user_id
    )
    result = await db.execute(
        select(PrivateLeaderboard)
        .where(or_(
            PrivateLeaderboard.owner_user_id == user_id,
            PrivateLeaderboard.id.in_(member_of),
        ))
        .order_by(PrivateLeaderboard.created_at.desc(), PrivateLeaderboard.id.desc())
    )
    return result.scalars().all()


async def update_leaderboard(
    db: AsyncSession,
    leaderboard_id: int,
    user_id: str,
    changes: dict[str, Any],
) -> PrivateLeaderboard:
    """Apply owner edits; keys outside the updatable set are ignored."""
    board = await _require_owner(db, leaderboard_id, user_id, "update")
    for field in UPDATABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "name" and (value is None or not str(value).strip()):
            raise InvalidInput("name cannot be empty")
        if field == "period_type":
            value = _check_period_type(value)
        if field == "is_active" and value is None:
            raise InvalidInput("isActive cannot be null")
        setattr(board, field, value)
    await db.flush()
    return board


async def delete_leaderboard(db: AsyncSession, leaderboard_id: int, user_id: str) -> None:
    board = await _require_owner(db, leaderboard_id, user_id, "delete")
    await db.execute(
        delete(PrivateLeaderboardMember).where(PrivateLeaderboardMember.leaderboard_id == board.id)
    )
    await db.delete(board)
    await db.flush()
    logger.info("Private leaderboard %d deleted by %s", leaderboard_id, user_id)


async def add_member(
    db: AsyncSession,
    leaderboard_id: int,
    user_id: str,
    role: str = "member",
) -> PrivateLeaderboardMember:
    """
    Insert a membership, or return the existing one.

    A unique violation on (leaderboard, user) means another writer won the
    race; any other integrity error propagates.
    """
    member = PrivateLeaderboardMember(leaderboard_id=leaderboard_id, user_id=user_id, role=role)
    try:
        async with db.begin_nested():
            db.add(member)
            await db.flush()
    except IntegrityError:
        existing = await get_membership(db, leaderboard_id, user_id)
        if existing is None:
            raise
        return existing
    return member


async def join_by_invite_code(db: AsyncSession, code: str, user_id: str) -> PrivateLeaderboardMember:
    if not code or not code.strip():
        raise InvalidInput("invite code required")

    normalized = normalize_invite_code(code)
    board = None
    if is_well_formed(normalized):
        result = await db.execute(
            select(PrivateLeaderboard).where(PrivateLeaderboard.invite_code == normalized)
        )
        board = result.scalar_one_or_none()
    if board is None:
        raise NotFound("Invalid invite code")
    if not board.is_active:
        raise InvalidState("Leaderboard is inactive")

    existing = await get_membership(db, board.id, user_id)
    if existing:
        return existing

    member = await add_member(db, board.id, user_id, role="member")
    logger.info("User %s joined private leaderboard %d", user_id, board.id)
    return member


async def invite_member(
    db: AsyncSession,
    leaderboard_id: int,
    owner_id: str,
    new_user_id: str,
) -> PrivateLeaderboardMember:
    if not new_user_id or not new_user_id.strip():
        raise InvalidInput("userId required")
    await _require_owner(db, leaderboard_id, owner_id, "invite")
    return await add_member(db, leaderboard_id, new_user_id.strip(), role="member")


async def list_members(
    db: AsyncSession,
    leaderboard_id: int,
    user_id: str,
) -> Sequence[PrivateLeaderboardMember]:
    await _require_owner(db, leaderboard_id, user_id, "list members")
    result = await db.execute(
        select(PrivateLeaderboardMember)
        .where(PrivateLeaderboardMember.leaderboard_id == leaderboard_id)
        .order_by(PrivateLeaderboardMember.joined_at, PrivateLeaderboardMember.id)
    )
    return result.scalars().all()


async def remove_member(
    db: AsyncSession,
    leaderboard_id: int,
    caller_id: str,
    member_user_id: str,
) -> None:
    """The owner removes a member, or a member removes themselves."""
    board = await _require_board(db, leaderboard_id)
    is_owner = board.owner_user_id == caller_id
    if not is_owner and caller_id != member_user_id:
        raise Forbidden("Not allowed")
    if member_user_id == board.owner_user_id:
        raise InvalidState("Owner cannot leave; delete the leaderboard instead")

    membership = await get_membership(db, leaderboard_id, member_user_id)
    if membership is None:
        raise NotFound("Member not found")
    await db.delete(membership)
    await db.flush()


async def get_standings(
    db: AsyncSession,
    leaderboard_id: int,
    user_id: str,
) -> list[Standing]:
    """
    Members ranked by points in the board's current period (dense ranks).

    Boards without a period type rank by overall points.
    """
    board = await _require_board(db, leaderboard_id)
    if board.owner_user_id != user_id and await get_membership(db, leaderboard_id, user_id) is None:
        raise Forbidden("Not a member")

    period = current_period(board.period_type)
    result = await db.execute(
        select(PrivateLeaderboardMember.user_id, PrivateLeaderboardMember.role, LeaderboardEntry.points)
        .outerjoin(
            LeaderboardEntry,
            (LeaderboardEntry.user_id == PrivateLeaderboardMember.user_id)
            & (LeaderboardEntry.period_key == period.period_key),
        )
        .where(PrivateLeaderboardMember.leaderboard_id == leaderboard_id)
    )
    rows = sorted(
        ((uid, role, points or 0) for uid, role, points in result.all()),
        key=lambda row: (-row[2], row[0]),
    )

    standings: list[Standing] = []
    rank = 0
    previous: int | None = None
    for uid, role, points in rows:
        if points != previous:
            rank += 1
            previous = points
        standings.append(Standing(user_id=uid, role=role, points=points, rank=rank))
    return standings


async def regenerate_invite_code(db: AsyncSession, leaderboard_id: int, user_id: str) -> str:
    board = await _require_owner(db, leaderboard_id, user_id, "regenerate the invite code")
    await assign_invite_code(db, board)
    logger.info("Invite code rotated for private leaderboard %d", leaderboard_id)
    return board.invite_code
