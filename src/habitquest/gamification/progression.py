"""Progression rules: experience, levels, currency, streaks and stats.

Pure functions over plain values; callers own persistence.

Experience is cumulative and never reset. A level-up happens when the running
total reaches ``experience_to_next``; the new threshold is ``level * 100``.
Only one level is gained per event, so applying the same rewards in a
different order can end on a different level.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta

DEFAULT_EXP_REWARD = 50
COMPLETION_CURRENCY = 10
EXP_PER_LEVEL = 100

CATEGORY_STATS: dict[str, str] = {
    "physical": "strength_stat",
    "mental": "discipline_stat",
    "knowledge": "intelligence_stat",
    "social": "social_stat",
}


@dataclass(frozen=True)
class ProgressState:
    level: int = 1
    experience: int = 0
    experience_to_next: int = 100
    currency: int = 0


@dataclass(frozen=True)
class ProgressUpdate:
    level: int
    experience: int
    experience_to_next: int
    currency: int
    leveled_up: bool

    @property
    def state(self) -> ProgressState:
        return ProgressState(self.level, self.experience, self.experience_to_next, self.currency)


def threshold_for_level(level: int) -> int:
    """Experience total that must be reached to leave ``level``."""
    return level * EXP_PER_LEVEL


def apply_experience(state: ProgressState, amount: int) -> ProgressUpdate:
    """Add experience and resolve at most one level-up."""
    experience = state.experience + amount
    level = state.level
    experience_to_next = state.experience_to_next
    leveled_up = experience >= experience_to_next
    if leveled_up:
        level += 1
        experience_to_next = threshold_for_level(level)
    return ProgressUpdate(
        level=level,
        experience=experience,
        experience_to_next=experience_to_next,
        currency=state.currency,
        leveled_up=leveled_up,
    )


def apply_completion(state: ProgressState, reward: int | None = None) -> ProgressUpdate:
    """Apply one habit completion: the habit's reward (50 if unset) plus flat currency."""
    update = apply_experience(state, DEFAULT_EXP_REWARD if reward is None else reward)
    return replace(update, currency=state.currency + COMPLETION_CURRENCY)


def advance_streak(current: int, last_date: date | None, on_date: date) -> int:
    """Streak length after recording activity on ``on_date``.

    Backfilled dates (earlier than the last recorded one) leave the streak alone.
    """
    if last_date is None:
        return 1
    if on_date == last_date:
        return max(current, 1)
    if on_date < last_date:
        return current
    if on_date - last_date == timedelta(days=1):
        return current + 1
    return 1


def stat_for_category(category: str) -> str | None:
    """Profile stat column raised by completing a habit of ``category``."""
    return CATEGORY_STATS.get(category)
