"""Hunt progress: enrollment side effect, activation and the answer gate.

A UserHunt row is created when the user enrolls in any quest of the hunt.
Activation starts the clock; ``time_limit`` is in minutes. A correct answer
before the clock runs out completes the hunt.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from questhunt.auth.principal import Access
from questhunt.db.models import Hunt, UserHunt
from questhunt.errors import InvalidState, NotFound

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def normalize_answer(answer: str | None) -> str:
    return " ".join((answer or "").split()).casefold()


async def get_user_hunt(db: AsyncSession, user_id: str, hunt_id: int) -> UserHunt | None:
    result = await db.execute(
        select(UserHunt)
        .options(selectinload(UserHunt.hunt))
        .where(UserHunt.user_id == user_id, UserHunt.hunt_id == hunt_id)
    )
    return result.scalar_one_or_none()


async def enroll_in_hunt(db: AsyncSession, user_id: str, hunt_id: int) -> UserHunt | None:
    """
    Create the caller's UserHunt row if it does not exist yet.

    An existing row is left untouched so an active hunt is never reset.
    Returns None when the hunt does not exist.
    """
    hunt = await db.get(Hunt, hunt_id)
    if hunt is None:
        return None

    existing = await get_user_hunt(db, user_id, hunt_id)
    if existing:
        return existing

    user_hunt = UserHunt(
        user_id=user_id,
        hunt_id=hunt_id,
        is_active=False,
        time_limit=hunt.time_limit,
    )
    try:
        async with db.begin_nested():
            db.add(user_hunt)
            await db.flush()
    except IntegrityError:
        return await get_user_hunt(db, user_id, hunt_id)

    logger.info("User %s enrolled in hunt %d", user_id, hunt_id)
    return user_hunt


async def list_mine(db: AsyncSession, access: Access) -> Sequence[UserHunt]:
    result = await db.execute(
        select(UserHunt)
        .options(selectinload(UserHunt.hunt))
        .where(*access.owned(UserHunt.user_id))
        .order_by(UserHunt.id.desc())
    )
    return result.scalars().all()


async def get_mine(db: AsyncSession, access: Access, hunt_id: int) -> UserHunt:
    user_hunt = await get_user_hunt(db, access.user_id, hunt_id)
    if user_hunt is None:
        raise NotFound("User hunt not found")
    return user_hunt


async def activate(db: AsyncSession, access: Access, hunt_id: int) -> UserHunt:
    """Start the caller's hunt clock. Activating an active hunt is a no-op."""
    user_hunt = await get_user_hunt(db, access.user_id, hunt_id)
    if user_hunt is None:
        raise NotFound("User hunt not found")
    if user_hunt.completed_at is not None:
        raise InvalidState("Hunt already completed")

    if not user_hunt.is_active:
        user_hunt.is_active = True
        user_hunt.started_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("User %s activated hunt %d", access.user_id, hunt_id)
    return user_hunt


def is_expired(user_hunt: UserHunt, now: datetime) -> bool:
    if not user_hunt.time_limit or user_hunt.started_at is None:
        return False
    deadline = _as_utc(user_hunt.started_at) + timedelta(minutes=user_hunt.time_limit)
    return now > deadline


async def check_answer(
    db: AsyncSession,
    access: Access,
    hunt_id: int,
    answer: str,
    *,
    now: datetime | None = None,
) -> tuple[bool, UserHunt]:
    """
    Compare ``answer`` with the hunt's answer (case and whitespace insensitive).

    Raises InvalidState when the hunt is not active, already completed or
    past its time limit. A correct answer completes the hunt.
    """
    now = now or datetime.now(timezone.utc)
    user_hunt = await get_user_hunt(db, access.user_id, hunt_id)
    if user_hunt is None:
        raise NotFound("User hunt not found")
    if user_hunt.completed_at is not None:
        raise InvalidState("Hunt already completed")
    if not user_hunt.is_active:
        raise InvalidState("Hunt is not active")
    if is_expired(user_hunt, now):
        raise InvalidState("Time limit exceeded")

    correct = normalize_answer(answer) == normalize_answer(user_hunt.hunt.answer)
    if correct:
        user_hunt.is_active = False
        user_hunt.completed_at = now
        await db.flush()
        logger.info("User %s completed hunt %d", access.user_id, hunt_id)
    return correct, user_hunt
