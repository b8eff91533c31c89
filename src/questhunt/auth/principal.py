"""Authenticated principal and data-access capability."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from questhunt.errors import Unauthenticated


@dataclass(frozen=True)
class Principal:
    id: str
    email: str | None = None


@dataclass(frozen=True)
class Access:
    """Which rows a data call may touch.

    ``elevated`` bypasses ownership (service role). ``scoped`` carries the
    caller; services add ``user_id == principal.id`` to every read or write
    of a user-owned row.
    """

    principal: Principal | None = None

    @classmethod
    def elevated(cls) -> Access:
        return cls(principal=None)

    @classmethod
    def scoped_to(cls, principal: Principal) -> Access:
        return cls(principal=principal)

    @property
    def is_elevated(self) -> bool:
        return self.principal is None

    @property
    def user_id(self) -> str:
        """The caller's id; scoped access is required for user-owned writes."""
        if self.principal is None:
            raise Unauthenticated("Authentication required")
        return self.principal.id

    def owned(self, column: Any) -> list[Any]:  # noqa: ANN401
        """Ownership predicates to add to a query on ``column``."""
        if self.principal is None:
            return []
        return [column == self.principal.id]
