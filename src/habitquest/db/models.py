"""ORM models for profiles, habits, the reward catalog and the money ledger.

Per-user tables cascade from user_profiles; catalog tables (achievements,
skills) are global reference data seeded by habitquest.gamification.seed.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from habitquest.db.base import Base, BigIntId

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class UserProfile(Base):
    """Player profile: identity plus denormalized progression counters."""

    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    profile_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Progression ---
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    experience: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    experience_to_next: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    currency: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    character_class: Mapped[str] = mapped_column(String(64), nullable=False, default="Shadow Assassin")
    title: Mapped[str] = mapped_column(String(64), nullable=False, default="Shadow Hunter")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_completions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_achievements: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # --- Stats ---
    strength_stat: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    intelligence_stat: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    discipline_stat: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    social_stat: Mapped[int] = mapped_column(Integer, nullable=False, default=10)

    stripe_customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # --- Relationships (ORM cascade mirrors ON DELETE CASCADE) ---
    habits: Mapped[list[Habit]] = relationship(
        "Habit", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    completions: Mapped[list[HabitCompletion]] = relationship(
        "HabitCompletion", cascade="all, delete-orphan", passive_deletes=True
    )
    achievements: Mapped[list[UserAchievement]] = relationship(
        "UserAchievement", cascade="all, delete-orphan", passive_deletes=True
    )
    skills: Mapped[list[UserSkill]] = relationship(
        "UserSkill", cascade="all, delete-orphan", passive_deletes=True
    )
    penalties: Mapped[list[Penalty]] = relationship(
        "Penalty", cascade="all, delete-orphan", passive_deletes=True
    )
    rewards: Mapped[list[Reward]] = relationship(
        "Reward", cascade="all, delete-orphan", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


class Habit(Base):
    """A recurring task. Soft-deleted via is_active so history survives."""

    __tablename__ = "habits"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="fas fa-check")
    exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    penalty: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("15.00"))
    penalty_destination: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_completions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completed_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    user: Mapped[UserProfile] = relationship("UserProfile", back_populates="habits")
    completions: Mapped[list[HabitCompletion]] = relationship(
        "HabitCompletion", back_populates="habit", cascade="all, delete-orphan", passive_deletes=True
    )


class HabitCompletion(Base):
    """Immutable completion fact: UNIQUE(habit_id, date) is the one-per-day guard."""

    __tablename__ = "habit_completions"
    __table_args__ = (
        UniqueConstraint("habit_id", "date", name="uq_habit_completion_day"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    habit_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    completed_on: Mapped[date] = mapped_column("date", Date, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    exp_gained: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    habit: Mapped[Habit] = relationship("Habit", back_populates="completions")


# ---------------------------------------------------------------------------
# Catalog: achievements & skills
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Achievement definitions: seeded on startup."""

    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="fas fa-trophy")
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement: Mapped[int] = mapped_column(Integer, nullable=False)
    exp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    currency_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    reward_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    is_secret: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class UserAchievement(Base):
    """Unlocked achievements: UNIQUE(user_id, achievement_id) prevents duplicates."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("achievements.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")


class Skill(Base):
    """Skill tree entries: tiered, bought with currency once a level is reached."""

    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(64), nullable=False, default="fas fa-star")
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    required_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    effect: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class UserSkill(Base):
    """Owned skills: UNIQUE(user_id, skill_id)."""

    __tablename__ = "user_skills"
    __table_args__ = (
        UniqueConstraint("user_id", "skill_id", name="uq_user_skill"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False
    )
    skill_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False
    )
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    skill: Mapped[Skill] = relationship("Skill", lazy="joined")


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class Penalty(Base):
    """Money owed for a missed habit day: UNIQUE(habit_id, missed_on)."""

    __tablename__ = "penalties"
    __table_args__ = (
        UniqueConstraint("habit_id", "missed_on", name="uq_penalty_habit_day"),
    )

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    habit_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    destination: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    missed_on: Mapped[date] = mapped_column(Date, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Reward(Base):
    """Money credited to a user, claimed through an external transfer."""

    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stripe_transfer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
