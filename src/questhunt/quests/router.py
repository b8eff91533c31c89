"""Quest enrollment and completion endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.auth.dependencies import get_scoped_access
from questhunt.auth.principal import Access
from questhunt.dependencies import get_db
from questhunt.quests import service
from questhunt.quests.schemas import (
    CompleteResponse,
    EnrollRequest,
    UserQuestDetailResponse,
    UserQuestResponse,
)

router = APIRouter(prefix="/api/user-quests", tags=["Quests"])


@router.post("", response_model=UserQuestResponse, status_code=201)
async def enroll_in_quest(
    body: EnrollRequest,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> UserQuestResponse:
    user_quest = await service.enroll(db, access, body.quest_id)
    await db.commit()
    return UserQuestResponse.model_validate(user_quest)


@router.get("", response_model=list[UserQuestDetailResponse])
async def list_user_quests(
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> list[UserQuestDetailResponse]:
    rows = await service.list_mine(db, access)
    return [UserQuestDetailResponse.model_validate(row) for row in rows]


@router.post("/{user_quest_id}/complete", response_model=CompleteResponse)
async def complete_user_quest(
    user_quest_id: str,
    access: Access = Depends(get_scoped_access),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> CompleteResponse:
    """Complete an enrollment exactly once; a repeat call is a 409."""
    result = await service.complete(db, access, user_quest_id)
    await db.commit()
    return CompleteResponse(
        ok=result["ok"],
        user_quest=UserQuestResponse.model_validate(result["user_quest"]),
        awarded=result["awarded"],
    )
