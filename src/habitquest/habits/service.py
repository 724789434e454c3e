"""Habit CRUD and the completion workflow.

A completion is validated, recorded, applied to the profile's progression
and committed in a single transaction. UNIQUE(habit_id, date) is the final
guard against a duplicate completion racing past the pre-check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from habitquest.db.models import Habit, HabitCompletion, Penalty, UserProfile
from habitquest.errors import AlreadyCompletedError, DayPenalizedError, HabitNotFoundError, InvalidInputError
from habitquest.gamification.progression import (
    CATEGORY_STATS,
    advance_streak,
    apply_completion,
    stat_for_category,
)
from habitquest.redis_client import publish_event
from habitquest.users.service import apply_progress, get_profile, progress_state

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PENALTY_DESTINATIONS = ("political", "competitor", "cause")
_UPDATABLE_FIELDS = (
    "name",
    "description",
    "category",
    "icon",
    "exp_reward",
    "penalty",
    "penalty_destination",
)
WEEK_DAYS = 7


@dataclass
class CompletionOutcome:
    """Result of a successful completion."""

    completion: HabitCompletion
    level: int
    leveled_up: bool
    unlocked_achievements: list[str] = field(default_factory=list)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _validate_fields(fields: dict[str, Any]) -> None:
    """Service-level checks, independent of the HTTP schemas."""
    if "name" in fields:
        name = (fields["name"] or "").strip()
        if not name or len(name) > 128:
            raise InvalidInputError("Habit name must be 1-128 characters")
        fields["name"] = name
    if "category" in fields and fields["category"] not in CATEGORY_STATS:
        raise InvalidInputError(f"Unknown habit category: {fields['category']}")
    if "exp_reward" in fields and fields["exp_reward"] is not None and fields["exp_reward"] < 0:
        raise InvalidInputError("Experience reward must not be negative")
    if "penalty" in fields and fields["penalty"] is not None:
        penalty = Decimal(str(fields["penalty"]))
        if penalty < 0:
            raise InvalidInputError("Penalty must not be negative")
        fields["penalty"] = penalty.quantize(Decimal("0.01"))
    destination = fields.get("penalty_destination")
    if destination is not None and destination not in PENALTY_DESTINATIONS:
        raise InvalidInputError(f"Unknown penalty destination: {destination}")


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def list_habits(db: AsyncSession, user_id: int) -> list[Habit]:
    """Active habits of a user, newest first."""
    result = await db.execute(
        select(Habit)
        .where(Habit.user_id == user_id, Habit.is_active.is_(True))
        .order_by(Habit.created_at.desc(), Habit.id.desc())
    )
    return list(result.scalars().all())


async def get_habit(db: AsyncSession, user_id: int, habit_id: int) -> Habit:
    """Fetch an active habit owned by user_id or raise HabitNotFoundError."""
    result = await db.execute(
        select(Habit).where(
            Habit.id == habit_id,
            Habit.user_id == user_id,
            Habit.is_active.is_(True),
        )
    )
    habit = result.scalar_one_or_none()
    if habit is None:
        raise HabitNotFoundError
    return habit


async def create_habit(db: AsyncSession, user_id: int, **fields: Any) -> Habit:
    fields = {k: v for k, v in fields.items() if k in _UPDATABLE_FIELDS and v is not None}
    if "name" not in fields or "category" not in fields:
        raise InvalidInputError("Habit name and category are required")
    _validate_fields(fields)

    habit = Habit(user_id=user_id, **fields)
    db.add(habit)
    await db.commit()
    logger.info("Habit %s created for user %s", habit.id, user_id)
    return habit


async def update_habit(db: AsyncSession, user_id: int, habit_id: int, **fields: Any) -> Habit:
    """Partial update; keys left out (or None) are unchanged."""
    habit = await get_habit(db, user_id, habit_id)
    changes = {k: v for k, v in fields.items() if k in _UPDATABLE_FIELDS and v is not None}
    _validate_fields(changes)
    for name, value in changes.items():
        setattr(habit, name, value)
    habit.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return habit


async def delete_habit(db: AsyncSession, user_id: int, habit_id: int) -> None:
    """Soft delete: the habit disappears from listings, its history stays."""
    habit = await get_habit(db, user_id, habit_id)
    habit.is_active = False
    habit.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Habit %s deactivated for user %s", habit_id, user_id)


# ---------------------------------------------------------------------------
# Completion workflow
# ---------------------------------------------------------------------------


async def _completion_exists(db: AsyncSession, habit_id: int, on_date: date) -> bool:
    result = await db.execute(
        select(HabitCompletion.id).where(
            HabitCompletion.habit_id == habit_id,
            HabitCompletion.completed_on == on_date,
        )
    )
    return result.scalar_one_or_none() is not None


async def _penalty_exists(db: AsyncSession, habit_id: int, on_date: date) -> bool:
    result = await db.execute(
        select(Penalty.id).where(Penalty.habit_id == habit_id, Penalty.missed_on == on_date)
    )
    return result.scalar_one_or_none() is not None


def _record_activity(profile: UserProfile, habit: Habit, on_date: date) -> None:
    """Advance streaks, counters and the category stat for one completion."""
    habit.current_streak = advance_streak(habit.current_streak, habit.last_completed_on, on_date)
    habit.longest_streak = max(habit.longest_streak, habit.current_streak)
    habit.total_completions += 1
    if habit.last_completed_on is None or on_date > habit.last_completed_on:
        habit.last_completed_on = on_date
    habit.updated_at = datetime.now(timezone.utc)

    profile.current_streak = advance_streak(profile.current_streak, profile.last_completed_on, on_date)
    profile.longest_streak = max(profile.longest_streak, profile.current_streak)
    profile.total_completions += 1
    if profile.last_completed_on is None or on_date > profile.last_completed_on:
        profile.last_completed_on = on_date

    stat = stat_for_category(habit.category)
    if stat is not None:
        setattr(profile, stat, getattr(profile, stat) + 1)


async def complete_habit(
    db: AsyncSession,
    redis: object,
    user_id: int,
    habit_id: int,
    on_date: date | None = None,
) -> CompletionOutcome:
    """Mark a habit complete for a day and apply its rewards.

    Steps:
    1. Validate the date and the habit's ownership
    2. Reject a second completion for the same (habit, date), or a day
       already assessed as missed
    3. Insert the completion, apply progression, streaks and stats
    4. Commit once; a UNIQUE violation is reported as AlreadyCompleted
    5. Publish level_up and evaluate achievement unlocks
    """
    today = utc_today()
    if on_date is None:
        on_date = today
    if on_date > today:
        raise InvalidInputError("Cannot complete a habit for a future date")

    habit = await get_habit(db, user_id, habit_id)
    if await _completion_exists(db, habit.id, on_date):
        raise AlreadyCompletedError
    # A penalized day stays missed, paid or not
    if await _penalty_exists(db, habit.id, on_date):
        raise DayPenalizedError

    profile = await get_profile(db, user_id)
    completion = HabitCompletion(
        habit_id=habit.id,
        user_id=user_id,
        completed_on=on_date,
        completed_at=datetime.now(timezone.utc),
        exp_gained=habit.exp_reward,
    )
    db.add(completion)

    update = apply_completion(progress_state(profile), habit.exp_reward)
    apply_progress(profile, update)
    _record_activity(profile, habit, on_date)

    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise AlreadyCompletedError from exc

    logger.info(
        "Habit %s completed by user %s on %s (+%d exp)",
        habit.id, user_id, on_date, completion.exp_gained,
    )

    if update.leveled_up:
        await publish_event(redis, "level_up", {
            "user_id": user_id,
            "new_level": update.level,
            "experience": update.experience,
        })

    from habitquest.gamification.unlock_service import evaluate_achievements

    unlocked = await evaluate_achievements(db, redis, user_id)

    # Achievement bonuses may have moved the level again; reload both rows
    # in case an unlock race rolled the session back.
    profile = await get_profile(db, user_id)
    await db.refresh(completion)

    return CompletionOutcome(
        completion=completion,
        level=profile.level,
        leveled_up=update.leveled_up,
        unlocked_achievements=[a.slug for a in unlocked],
    )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def list_completions(
    db: AsyncSession,
    user_id: int,
    on_date: date | None = None,
) -> list[HabitCompletion]:
    """Completions of a user (optionally for one day), newest first."""
    query = select(HabitCompletion).where(HabitCompletion.user_id == user_id)
    if on_date is not None:
        query = query.where(HabitCompletion.completed_on == on_date)
    query = query.order_by(HabitCompletion.completed_at.desc(), HabitCompletion.id.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def weekly_progress(
    db: AsyncSession,
    user_id: int,
    today: date | None = None,
) -> list[tuple[date, int]]:
    """Completion counts per day for the 7 days ending today, oldest first.

    Days without completions are included with a count of 0.
    """
    if today is None:
        today = utc_today()
    start = today - timedelta(days=WEEK_DAYS - 1)

    result = await db.execute(
        select(HabitCompletion.completed_on, func.count(HabitCompletion.id))
        .where(
            HabitCompletion.user_id == user_id,
            HabitCompletion.completed_on >= start,
            HabitCompletion.completed_on <= today,
        )
        .group_by(HabitCompletion.completed_on)
    )
    counts = {day: count for day, count in result.all()}
    return [
        (start + timedelta(days=offset), counts.get(start + timedelta(days=offset), 0))
        for offset in range(WEEK_DAYS)
    ]
