"""ORM models for couples, pets, and the care/game logs.

Schema is owned by the Alembic migrations in ``alembic/versions``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from copet.db.base import Base, BigIntPK, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users & Couples
# ---------------------------------------------------------------------------


class User(Base):
    """Identity mirror of the external auth service's users."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


class Couple(Base):
    """Two partners co-parenting one pet. Stored with user1_id < user2_id."""

    __tablename__ = "couples"
    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_couples_users"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user2_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    pets: Mapped[list[Pet]] = relationship("Pet", back_populates="couple")

    def has_member(self, user_id: int) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def partner_of(self, user_id: int) -> int:
        return self.user2_id if user_id == self.user1_id else self.user1_id


# ---------------------------------------------------------------------------
# Pets
# ---------------------------------------------------------------------------


class Pet(Base):
    """Pet record. Stats are materialized as of ``last_care_at`` and decayed on read.

    ``version`` is bumped on every UPDATE; a concurrent writer holding a
    stale version gets StaleDataError at flush.
    """

    __tablename__ = "pets"
    __table_args__ = (
        Index(
            "uq_pets_active_per_couple",
            "couple_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    couple_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("couples.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    species: Mapped[str] = mapped_column(String(16), nullable=False)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="default")
    stage: Mapped[str] = mapped_column(String(16), nullable=False, default="egg")

    hunger: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    happiness: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    energy: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    cleanliness: Mapped[int | None] = mapped_column(Integer, nullable=True)

    xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    streak_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_care_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    combo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_care_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_actor_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    personality: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    action_counts: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    action_timestamps: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    couple: Mapped[Couple] = relationship("Couple", back_populates="pets")

    __mapper_args__ = {"version_id_col": version}  # noqa: RUF012


class CareAction(Base):
    """Append-only audit log of accepted care actions."""

    __tablename__ = "care_actions"
    __table_args__ = (
        Index("idx_care_actions_pet_created", "pet_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    pet_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    co_op_bonus: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    combo: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EvolutionMilestone(Base):
    """One-time couple achievement. Unique per (couple, milestone_type)."""

    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("couple_id", "milestone_type", name="uq_milestones_couple_type"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    couple_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("couples.id", ondelete="CASCADE"), nullable=False)
    milestone_type: Mapped[str] = mapped_column(String(64), nullable=False)
    evolution_unlocked: Mapped[str | None] = mapped_column(String(16), nullable=True)
    celebrated_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    achieved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PetMessage(Base):
    """Short in-character message the pet sends its owners."""

    __tablename__ = "pet_messages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    pet_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Mini-games
# ---------------------------------------------------------------------------


class MiniGameSession(Base):
    """Mini-game play session. Sealed once ``completed_at`` is set."""

    __tablename__ = "game_sessions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    pet_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    partner_user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    game_type: Mapped[str] = mapped_column(String(32), nullable=False)
    is_coop: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    partner_joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    raw_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    final_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rank: Mapped[str | None] = mapped_column(String(16), nullable=True)
    coop_bonus: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    xp_awarded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
