"""Penalty/reward ledger.

Penalties are money owed for missed habit days; rewards are money credited by
achievements. Settling either is idempotent: the first external reference
recorded wins and later calls return the row untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from habitquest.db.models import Habit, HabitCompletion, Penalty, Reward, UserSkill
from habitquest.errors import (
    HabitNotMissedError,
    InvalidInputError,
    PenaltyNotFoundError,
    RewardNotFoundError,
)
from habitquest.habits.service import get_habit, utc_today

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
DEFAULT_DESTINATION = "cause"


@dataclass(frozen=True)
class LedgerSummary:
    outstanding_penalties: Decimal
    paid_penalties: Decimal
    unclaimed_rewards: Decimal
    claimed_rewards: Decimal
    unpaid_penalty_count: int
    unclaimed_reward_count: int


def to_cents(amount: Decimal | float | int) -> Decimal:
    return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_penalties(db: AsyncSession, user_id: int, unpaid_only: bool = False) -> list[Penalty]:
    """Penalties of a user, newest first."""
    query = select(Penalty).where(Penalty.user_id == user_id)
    if unpaid_only:
        query = query.where(Penalty.is_paid.is_(False))
    result = await db.execute(query.order_by(Penalty.created_at.desc(), Penalty.id.desc()))
    return list(result.scalars().all())


async def list_rewards(db: AsyncSession, user_id: int, unclaimed_only: bool = False) -> list[Reward]:
    """Rewards of a user, newest first."""
    query = select(Reward).where(Reward.user_id == user_id)
    if unclaimed_only:
        query = query.where(Reward.is_claimed.is_(False))
    result = await db.execute(query.order_by(Reward.created_at.desc(), Reward.id.desc()))
    return list(result.scalars().all())


async def get_unpaid_penalties(
    db: AsyncSession,
    user_id: int,
    penalty_ids: Iterable[int],
) -> list[Penalty]:
    """Owned, unpaid penalties among penalty_ids.

    Raises PenaltyNotFoundError when any id is unknown, foreign or already paid.
    """
    wanted = set(penalty_ids)
    if not wanted:
        raise InvalidInputError("At least one penalty is required")
    result = await db.execute(
        select(Penalty)
        .where(
            Penalty.id.in_(wanted),
            Penalty.user_id == user_id,
            Penalty.is_paid.is_(False),
        )
        .order_by(Penalty.id)
    )
    penalties = list(result.scalars().all())
    missing = wanted - {p.id for p in penalties}
    if missing:
        raise PenaltyNotFoundError(
            f"Unknown or already paid penalties: {', '.join(str(i) for i in sorted(missing))}"
        )
    return penalties


async def summarize(db: AsyncSession, user_id: int) -> LedgerSummary:
    """Decimal totals of owed/paid penalties and unclaimed/claimed rewards."""
    penalty_rows = await db.execute(
        select(Penalty.is_paid, func.coalesce(func.sum(Penalty.amount), 0), func.count(Penalty.id))
        .where(Penalty.user_id == user_id)
        .group_by(Penalty.is_paid)
    )
    penalties = {bool(paid): (to_cents(total), count) for paid, total, count in penalty_rows.all()}

    reward_rows = await db.execute(
        select(Reward.is_claimed, func.coalesce(func.sum(Reward.amount), 0), func.count(Reward.id))
        .where(Reward.user_id == user_id)
        .group_by(Reward.is_claimed)
    )
    rewards = {bool(claimed): (to_cents(total), count) for claimed, total, count in reward_rows.all()}

    zero = (to_cents(0), 0)
    return LedgerSummary(
        outstanding_penalties=penalties.get(False, zero)[0],
        paid_penalties=penalties.get(True, zero)[0],
        unclaimed_rewards=rewards.get(False, zero)[0],
        claimed_rewards=rewards.get(True, zero)[0],
        unpaid_penalty_count=penalties.get(False, zero)[1],
        unclaimed_reward_count=rewards.get(False, zero)[1],
    )


# ---------------------------------------------------------------------------
# Penalties
# ---------------------------------------------------------------------------


async def penalty_multiplier(db: AsyncSession, user_id: int) -> Decimal:
    """Product of penalty_multiplier effects over the user's active skills."""
    result = await db.execute(
        select(UserSkill).where(UserSkill.user_id == user_id, UserSkill.is_active.is_(True))
    )
    multiplier = Decimal(1)
    for user_skill in result.scalars().unique():
        factor = (user_skill.skill.effect or {}).get("penalty_multiplier")
        if factor is not None:
            multiplier *= Decimal(str(factor))
    return multiplier


async def _penalty_for_day(db: AsyncSession, habit_id: int, missed_on: date) -> Penalty | None:
    result = await db.execute(
        select(Penalty).where(Penalty.habit_id == habit_id, Penalty.missed_on == missed_on)
    )
    return result.scalar_one_or_none()


async def create_penalty(
    db: AsyncSession,
    user_id: int,
    habit: Habit,
    missed_on: date,
    reason: str | None = None,
    amount: Decimal | None = None,
) -> Penalty:
    """Record a penalty for (habit, missed_on); an existing one is returned as is."""
    existing = await _penalty_for_day(db, habit.id, missed_on)
    if existing is not None:
        return existing

    habit_id = habit.id
    penalty = Penalty(
        user_id=user_id,
        habit_id=habit_id,
        amount=to_cents(habit.penalty if amount is None else amount),
        destination=habit.penalty_destination or DEFAULT_DESTINATION,
        reason=reason or f'Missed "{habit.name}" on {missed_on.isoformat()}',
        missed_on=missed_on,
    )
    db.add(penalty)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await _penalty_for_day(db, habit_id, missed_on)
        if existing is None:
            raise
        return existing

    logger.info("Penalty %s of %s recorded for user %s", penalty.id, penalty.amount, user_id)
    return penalty


async def assess_missed_habit(
    db: AsyncSession,
    user_id: int,
    habit_id: int,
    missed_on: date,
) -> Penalty:
    """Turn a missed habit day into a penalty.

    The amount is the habit's penalty scaled by the user's active skill
    effects, rounded to cents. Assessing the same day twice returns the
    first penalty.
    """
    if missed_on >= utc_today():
        raise InvalidInputError("Only past days can be assessed as missed")

    habit = await get_habit(db, user_id, habit_id)
    created_at = habit.created_at
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc)
    if missed_on < created_at.date():
        raise InvalidInputError("Habit did not exist on that date")
    if habit.penalty <= 0:
        raise InvalidInputError("Habit carries no penalty")

    completed = await db.execute(
        select(HabitCompletion.id).where(
            HabitCompletion.habit_id == habit.id,
            HabitCompletion.completed_on == missed_on,
        )
    )
    if completed.scalar_one_or_none() is not None:
        raise HabitNotMissedError

    amount = to_cents(habit.penalty * await penalty_multiplier(db, user_id))
    return await create_penalty(db, user_id, habit, missed_on, amount=amount)


async def mark_penalty_paid(
    db: AsyncSession,
    penalty_id: int,
    external_ref: str,
    user_id: int | None = None,
) -> Penalty:
    """Mark a penalty paid. Already paid penalties keep their first reference."""
    query = select(Penalty).where(Penalty.id == penalty_id)
    if user_id is not None:
        query = query.where(Penalty.user_id == user_id)
    penalty = (await db.execute(query)).scalar_one_or_none()
    if penalty is None:
        raise PenaltyNotFoundError
    if penalty.is_paid:
        return penalty

    penalty.is_paid = True
    penalty.stripe_payment_intent_id = external_ref
    penalty.paid_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Penalty %s paid (ref %s)", penalty_id, external_ref)
    return penalty


async def mark_penalties_paid(
    db: AsyncSession,
    user_id: int,
    penalty_ids: Iterable[int],
    external_ref: str,
) -> list[Penalty]:
    """Settle several penalties of one user with one reference, in one commit.

    Ids that are unknown or owned by someone else are ignored.
    """
    result = await db.execute(
        select(Penalty)
        .where(Penalty.id.in_(set(penalty_ids)), Penalty.user_id == user_id)
        .order_by(Penalty.id)
    )
    penalties = list(result.scalars().all())
    now = datetime.now(timezone.utc)
    newly_paid = 0
    for penalty in penalties:
        if penalty.is_paid:
            continue
        penalty.is_paid = True
        penalty.stripe_payment_intent_id = external_ref
        penalty.paid_at = now
        newly_paid += 1
    await db.commit()
    if newly_paid:
        logger.info("Marked %d penalties paid for user %s (ref %s)", newly_paid, user_id, external_ref)
    return penalties


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


def add_reward(db: AsyncSession, user_id: int, amount: Decimal, reason: str | None = None) -> Reward:
    """Stage a reward in the caller's transaction (no commit)."""
    amount = to_cents(amount)
    if amount <= 0:
        raise InvalidInputError("Reward amount must be positive")
    reward = Reward(user_id=user_id, amount=amount, reason=reason)
    db.add(reward)
    return reward


async def create_reward(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    reason: str | None = None,
) -> Reward:
    reward = add_reward(db, user_id, amount, reason)
    await db.commit()
    logger.info("Reward %s of %s credited to user %s", reward.id, reward.amount, user_id)
    return reward


async def mark_reward_claimed(
    db: AsyncSession,
    reward_id: int,
    transfer_ref: str | None = None,
    user_id: int | None = None,
) -> Reward:
    """Mark a reward claimed. Already claimed rewards are returned untouched."""
    query = select(Reward).where(Reward.id == reward_id)
    if user_id is not None:
        query = query.where(Reward.user_id == user_id)
    reward = (await db.execute(query)).scalar_one_or_none()
    if reward is None:
        raise RewardNotFoundError
    if reward.is_claimed:
        return reward

    reward.is_claimed = True
    reward.stripe_transfer_id = transfer_ref
    reward.claimed_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("Reward %s claimed by user %s", reward_id, reward.user_id)
    return reward
