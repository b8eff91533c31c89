"""Hunt progress endpoints for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.auth.dependencies import get_scoped_access
from questhunt.auth.principal import Access
from questhunt.dependencies import get_db
from questhunt.hunts import service
from questhunt.hunts.schemas import CheckAnswerRequest, CheckAnswerResponse, UserHuntResponse

router = APIRouter(prefix="/api/user-hunts", tags=["Hunts"])


@router.get("", response_model=list[UserHuntResponse])
async def list_user_hunts(
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[UserHuntResponse]:
    rows = await service.list_mine(db, access)
    return [UserHuntResponse.model_validate(row) for row in rows]


@router.get("/{hunt_id}", response_model=UserHuntResponse)
async def get_user_hunt(
    hunt_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> UserHuntResponse:
    return UserHuntResponse.model_validate(await service.get_mine(db, access, hunt_id))


@router.post("/{hunt_id}/activate", response_model=UserHuntResponse)
async def activate_hunt(
    hunt_id: int,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> UserHuntResponse:
    user_hunt = await service.activate(db, access, hunt_id)
    await db.commit()
    return UserHuntResponse.model_validate(user_hunt)


@router.post("/{hunt_id}/check", response_model=CheckAnswerResponse)
async def check_hunt_answer(
    hunt_id: int,
    body: CheckAnswerRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CheckAnswerResponse:
    """Submit an answer; the stored answer is never returned."""
    correct, user_hunt = await service.check_answer(db, access, hunt_id, body.answer)
    await db.commit()
    return CheckAnswerResponse(correct=correct, user_hunt=UserHuntResponse.model_validate(user_hunt))
