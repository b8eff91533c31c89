"""ORM models for quests, hunts, locations and leaderboards.

User ids are the auth backend's subject claim (UUID strings); there is no
local users table.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from questhunt.db.base import Base, BigIntPK, utcnow


# ---------------------------------------------------------------------------
# Hunts & Locations
# ---------------------------------------------------------------------------


class Hunt(Base):
    """A group of quests gated by a question/answer and optional time limit."""

    __tablename__ = "hunts"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    time_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    quests: Mapped[list[Quest]] = relationship("Quest", back_populates="hunt")


class Location(Base):
    """A geofenced point; radius is in meters."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius: Mapped[int] = mapped_column(Integer, nullable=False, default=50, server_default="50")


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    """A completable task tied to a location and a point reward."""

    __tablename__ = "quests"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    collectible_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    points_achievable: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    hunt_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("hunts.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    location: Mapped[Location] = relationship("Location")
    hunt: Mapped[Hunt | None] = relationship("Hunt", back_populates="quests")


class UserQuest(Base):
    """Per-user enrollment; is_complete latches false -> true exactly once."""

    __tablename__ = "user_quests"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_user_quests_user_quest"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    quest_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False,
    )
    step: Mapped[str] = mapped_column(String(16), nullable=False, default="0", server_default="0")
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    quest: Mapped[Quest] = relationship("Quest")


class UserHunt(Base):
    """Hunt progress, created as a side effect of enrolling in a hunt's quest."""

    __tablename__ = "user_hunts"
    __table_args__ = (
        UniqueConstraint("user_id", "hunt_id", name="uq_user_hunts_user_hunt"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    hunt_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("hunts.id", ondelete="CASCADE"), nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    time_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    hunt: Mapped[Hunt] = relationship("Hunt")


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------


class LeaderboardEntry(Base):
    """One row per (user, period). period_key makes 'overall' unique too."""

    __tablename__ = "leaderboard"
    __table_args__ = (
        UniqueConstraint("user_id", "period_key", name="uq_leaderboard_user_period"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    period_type: Mapped[str] = mapped_column(String(16), nullable=False)
    period_key: Mapped[str] = mapped_column(String(32), nullable=False)
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)


class PrivateLeaderboard(Base):
    """Invite-only leaderboard owned by one user."""

    __tablename__ = "private_leaderboards"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    owner_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    period_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    invite_code: Mapped[str] = mapped_column(String(8), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    members: Mapped[list[PrivateLeaderboardMember]] = relationship(
        "PrivateLeaderboardMember",
        back_populates="leaderboard",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PrivateLeaderboardMember(Base):
    """Membership row; unique per (leaderboard, user)."""

    __tablename__ = "private_leaderboard_members"
    __table_args__ = (
        UniqueConstraint("leaderboard_id", "user_id", name="uq_plb_members_board_user"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    leaderboard_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("private_leaderboards.id", ondelete="CASCADE"), nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member", server_default="member")
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
    )

    leaderboard: Mapped[PrivateLeaderboard] = relationship("PrivateLeaderboard", back_populates="members")
