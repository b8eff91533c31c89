"""Quest progress workflow: enrollment and exactly-once completion.

Completion is a one-way latch on ``user_quests.is_complete``. The latch is
set by a single conditional UPDATE that repeats the ``is_complete = false``
predicate, so two concurrent completions of the same row cannot both
succeed. Points are awarded only after the latch is set, in the same
transaction; the router commits both or neither.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from questhunt.auth.principal import Access
from questhunt.db.models import Quest, UserQuest
from questhunt.errors import Conflict, Forbidden, InvalidInput, NotFound, ValidationError
from questhunt.hunts.service import enroll_in_hunt
from questhunt.leaderboard.ledger import add_points, parse_points

logger = logging.getLogger(__name__)
audit_log = structlog.get_logger()


def parse_id(value: Any, field: str = "id") -> int:  # noqa: ANN401
    """Parse a positive integer identifier."""
    if isinstance(value, bool):
        raise InvalidInput(f"{field} is invalid")
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{field} is invalid") from e
    if parsed <= 0:
        raise InvalidInput(f"{field} is invalid")
    return parsed


async def _get_quest(db: AsyncSession, quest_id: int) -> Quest | None:
    return await db.get(Quest, quest_id)


async def enroll(db: AsyncSession, access: Access, quest_id: Any) -> UserQuest:  # noqa: ANN401
    """
    Enroll the caller in a quest, then (best effort) in the quest's hunt.

    A failed hunt enrollment is logged and dropped; it never undoes the
    quest enrollment.
    """
    user_id = access.user_id
    if quest_id is None or (isinstance(quest_id, str) and not quest_id.strip()):
        raise InvalidInput("questId is required")
    quest_pk = parse_id(quest_id, "questId")

    quest = await _get_quest(db, quest_pk)
    if quest is None:
        raise NotFound("Quest not found")

    user_quest = UserQuest(user_id=user_id, quest_id=quest_pk, step="0", is_complete=False)
    try:
        async with db.begin_nested():
            db.add(user_quest)
            await db.flush()
    except IntegrityError as e:
        raise ValidationError(str(e.orig), quest_id=quest_pk) from e

    if quest.hunt_id is not None:
        try:
            async with db.begin_nested():
                await enroll_in_hunt(db, user_id, quest.hunt_id)
        except Exception:
            logger.warning(
                "Hunt enrollment failed for user %s, hunt %s", user_id, quest.hunt_id,
                exc_info=True,
            )

    logger.info("User %s enrolled in quest %d", user_id, quest_pk)
    return user_quest


async def list_mine(db: AsyncSession, access: Access) -> Sequence[UserQuest]:
    """The caller's enrollments with quest detail, newest first."""
    result = await db.execute(
        select(UserQuest)
        .options(selectinload(UserQuest.quest))
        .where(*access.owned(UserQuest.user_id))
        .order_by(UserQuest.created_at.desc(), UserQuest.id.desc())
    )
    return result.scalars().all()


async def complete(
    db: AsyncSession,
    access: Access,
    user_quest_id: Any,  # noqa: ANN401
    *,
    caller_id: str | None = None,
) -> dict[str, Any]:
    """
    Mark the caller's enrollment complete and award the quest's points.

    Checks run in order: id format, row visible to the caller, row owned
    by the caller, not already complete, quest exists. Does not commit.

    Scoped access completes on behalf of its principal. Elevated access
    (service role) sees every row and must name the user it acts for in
    ``caller_id``; a row belonging to someone else is Forbidden.
    """
    uq_id = parse_id(user_quest_id)
    user_id = caller_id if caller_id is not None and access.is_elevated else access.user_id

    result = await db.execute(
        select(UserQuest).where(UserQuest.id == uq_id, *access.owned(UserQuest.user_id))
    )
    user_quest = result.scalar_one_or_none()
    if user_quest is None:
        raise NotFound("User quest not found")
    if user_quest.user_id != user_id:
        raise Forbidden("You do not own this quest")
    if user_quest.is_complete:
        raise Conflict("already completed")

    quest = await _get_quest(db, user_quest.quest_id)
    if quest is None:
        raise NotFound("Quest not found")

    latched = await db.execute(
        update(UserQuest)
        .where(
            UserQuest.id == uq_id,
            UserQuest.user_id == user_id,
            UserQuest.is_complete.is_(False),
        )
        .values(is_complete=True, completed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if latched.rowcount == 0:
        raise Conflict("nothing to update")
    await db.refresh(user_quest)

    awarded = parse_points(quest.points_achievable)
    ledger = await add_points(db, user_id, awarded)

    audit_log.info(
        "quest_completed",
        user_id=user_id,
        user_quest_id=uq_id,
        quest_id=quest.id,
        awarded=awarded,
        ledger_method=ledger["method"],
    )
    return {"ok": True, "user_quest": user_quest, "awarded": awarded}
