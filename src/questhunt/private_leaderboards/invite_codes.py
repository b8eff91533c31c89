"""Invite codes for private leaderboards.

A code is 8 characters from A-Z and 0-9. Codes are typed by hand, so
lookup ignores case, surrounding whitespace and the dash or space people
put in the middle ("abcd-1234" finds ABCD1234).

Uniqueness is enforced by the ``invite_code`` unique index: a code is
written inside a savepoint and a collision just draws again.
"""

from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from questhunt.db.models import PrivateLeaderboard
from questhunt.errors import Conflict

INVITE_CHARSET = string.ascii_uppercase + string.digits
INVITE_LENGTH = 8
MAX_ATTEMPTS = 5

_CODE_RE = re.compile(rf"[A-Z0-9]{{{INVITE_LENGTH}}}")
_SEPARATORS_RE = re.compile(r"[\s\-]+")


def generate_invite_code(choice: Callable[[str], str] = secrets.choice) -> str:
    return "".join(choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return _SEPARATORS_RE.sub("", code).upper()


def is_well_formed(code: str) -> bool:
    """True when a normalized code could have been issued by us."""
    return _CODE_RE.fullmatch(code) is not None


async def assign_invite_code(
    db: AsyncSession,
    board: PrivateLeaderboard,
    *,
    generate: Callable[[], str] = generate_invite_code,
) -> str:
    """
    Give ``board`` a fresh code and flush it.

    Works for new and existing boards. Raises Conflict when every attempt
    collides with a code already in use.
    """
    collided = False
    for _ in range(MAX_ATTEMPTS):
        code = generate()
        try:
            async with db.begin_nested():
                board.invite_code = code
                db.add(board)
                await db.flush()
        except IntegrityError:
            collided = True
            continue
        if collided:
            # The rolled back savepoint expired the row.
            await db.refresh(board)
        return code
    raise Conflict("Could not allocate a unique invite code", attempts=MAX_ATTEMPTS)
