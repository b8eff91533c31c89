"""Private leaderboard endpoints: boards, membership and standings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.auth.dependencies import get_scoped_access
from questhunt.auth.principal import Access
from questhunt.db.models import PrivateLeaderboard
from questhunt.dependencies import get_db
from questhunt.errors import NotFound
from questhunt.private_leaderboards import service
from questhunt.private_leaderboards.schemas import (
    CreateLeaderboardRequest,
    InviteCodeResponse,
    InviteMemberRequest,
    JoinLeaderboardRequest,
    LeaderboardResponse,
    MemberResponse,
    StandingResponse,
    UpdateLeaderboardRequest,
)

router = APIRouter(prefix="/api/private-leaderboards", tags=["Private Leaderboards"])


def _board_response(board: PrivateLeaderboard, show_invite: bool) -> LeaderboardResponse:
    response = LeaderboardResponse.model_validate(board)
    if not show_invite:
        response.invite_code = None
    return response


@router.post("", response_model=LeaderboardResponse, status_code=201)
async def create_private_leaderboard(
    body: CreateLeaderboardRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LeaderboardResponse:
    board = await service.create_leaderboard(
        db,
        access.user_id,
        body.name,
        description=body.description,
        cover_image=body.cover_image,
        period_type=body.period_type,
        period_start=body.period_start,
        period_end=body.period_end,
        is_active=body.is_active,
    )
    await db.commit()
    return _board_response(board, show_invite=True)


@router.get("", response_model=list[LeaderboardResponse])
async def list_private_leaderboards(
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[LeaderboardResponse]:
    boards = await service.list_for_user(db, access.user_id)
    return [_board_response(board, show_invite=True) for board in boards]


@router.post("/join", response_model=MemberResponse)
async def join_private_leaderboard(
    body: JoinLeaderboardRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> MemberResponse:
    """Join by invite code; joining twice returns the existing membership."""
    member = await service.join_by_invite_code(db, body.invite_code, access.user_id)
    await db.commit()
    return MemberResponse.model_validate(member)


@router.get("/{leaderboard_id}", response_model=LeaderboardResponse)
async def get_private_leaderboard(
    leaderboard_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LeaderboardResponse:
    board = await service.get_leaderboard(db, leaderboard_id)
    if board is None:
        raise NotFound("Leaderboard not found")
    is_member = (
        board.owner_user_id == access.user_id
        or await service.get_membership(db, leaderboard_id, access.user_id) is not None
    )
    return _board_response(board, show_invite=is_member)


@router.patch("/{leaderboard_id}", response_model=LeaderboardResponse)
async def update_private_leaderboard(
    leaderboard_id: int,
    body: UpdateLeaderboardRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> LeaderboardResponse:
    board = await service.update_leaderboard(
        db, leaderboard_id, access.user_id, body.model_dump(exclude_unset=True),
    )
    await db.commit()
    return _board_response(board, show_invite=True)


@router.delete("/{leaderboard_id}", status_code=204)
async def delete_private_leaderboard(
    leaderboard_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> Response:
    await service.delete_leaderboard(db, leaderboard_id, access.user_id)
    await db.commit()
    return Response(status_code=204)


@router.get("/{leaderboard_id}/standings", response_model=list[StandingResponse])
async def private_leaderboard_standings(
    leaderboard_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[StandingResponse]:
    standings = await service.get_standings(db, leaderboard_id, access.user_id)
    return [StandingResponse.model_validate(s) for s in standings]


@router.post("/{leaderboard_id}/members", response_model=MemberResponse, status_code=201)
async def invite_private_leaderboard_member(
    leaderboard_id: int,
    body: InviteMemberRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> MemberResponse:
    member = await service.invite_member(db, leaderboard_id, access.user_id, body.user_id)
    await db.commit()
    return MemberResponse.model_validate(member)


@router.get("/{leaderboard_id}/members", response_model=list[MemberResponse])
async def list_private_leaderboard_members(
    leaderboard_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[MemberResponse]:
    members = await service.list_members(db, leaderboard_id, access.user_id)
    return [MemberResponse.model_validate(m) for m in members]


@router.delete("/{leaderboard_id}/members/{user_id}", status_code=204)
async def remove_private_leaderboard_member(
    leaderboard_id: int,
    user_id: str,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> Response:
    await service.remove_member(db, leaderboard_id, access.user_id, user_id)
    await db.commit()
    return Response(status_code=204)


@router.post("/{leaderboard_id}/invite-code", response_model=InviteCodeResponse)
async def regenerate_private_leaderboard_invite_code(
    leaderboard_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> InviteCodeResponse:
    code = await service.regenerate_invite_code(db, leaderboard_id, access.user_id)
    await db.commit()
    return InviteCodeResponse(invite_code=code)
