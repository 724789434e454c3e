"""Habit completion workflow tests (service level, SQLite)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.db.models import HabitCompletion, UserProfile
from habitquest.errors import AlreadyCompletedError, DayPenalizedError, HabitNotFoundError, InvalidInputError
from habitquest.gamification.progression import COMPLETION_CURRENCY
from habitquest.gamification.seed import ACHIEVEMENT_SEED_DATA
from habitquest.habits import service as habit_service
from habitquest.habits.service import (
    complete_habit,
    create_habit,
    delete_habit,
    list_completions,
    utc_today,
    weekly_progress,
)
from habitquest.ledger.service import assess_missed_habit
from habitquest.users.service import get_or_create_profile

FIRST_STEP = next(a for a in ACHIEVEMENT_SEED_DATA if a["slug"] == "first_step")


async def _completion_count(db: AsyncSession, habit_id: int) -> int:
    result = await db.execute(
        select(func.count(HabitCompletion.id)).where(HabitCompletion.habit_id == habit_id)
    )
    return result.scalar_one()


class TestCompleteHabit:
    """complete_habit: validate, record, progress, persist."""

    @pytest.mark.asyncio
    async def test_first_completion(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Read", category="knowledge", exp_reward=50)

        outcome = await complete_habit(db_session, None, profile.id, habit.id)

        assert outcome.completion.exp_gained == 50
        assert outcome.completion.completed_on == utc_today()
        assert outcome.leveled_up is False
        assert outcome.unlocked_achievements == ["first_step"]
        assert profile.experience == 50 + FIRST_STEP["exp_reward"]
        assert profile.currency == COMPLETION_CURRENCY + FIRST_STEP["currency_reward"]
        assert profile.total_completions == 1
        assert profile.current_streak == 1
        assert profile.intelligence_stat == 11
        assert habit.current_streak == 1
        assert habit.total_completions == 1

    @pytest.mark.asyncio
    async def test_level_up(self, db_session: AsyncSession, profile: UserProfile):
        profile.experience = 90
        await db_session.commit()
        habit = await create_habit(db_session, profile.id, name="Lift", category="physical", exp_reward=50)

        outcome = await complete_habit(db_session, None, profile.id, habit.id)

        assert outcome.leveled_up is True
        assert outcome.level == 2
        assert profile.experience_to_next == 200
        assert profile.experience == 140 + FIRST_STEP["exp_reward"]
        assert profile.strength_stat == 11

    @pytest.mark.asyncio
    async def test_second_completion_same_day_rejected(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Meditate", category="mental")
        await complete_habit(db_session, None, profile.id, habit.id)
        experience, currency = profile.experience, profile.currency

        with pytest.raises(AlreadyCompletedError):
            await complete_habit(db_session, None, profile.id, habit.id)

        await db_session.refresh(profile)
        assert profile.experience == experience
        assert profile.currency == currency
        assert await _completion_count(db_session, habit.id) == 1

    @pytest.mark.asyncio
    async def test_duplicate_caught_by_unique_constraint(
        self, db_session: AsyncSession, profile: UserProfile, monkeypatch: pytest.MonkeyPatch
    ):
        habit = await create_habit(db_session, profile.id, name="Read", category="knowledge", exp_reward=50)
        habit_id = habit.id
        await complete_habit(db_session, None, profile.id, habit_id)
        experience, currency = profile.experience, profile.currency

        async def never_completed(db, habit_id, on_date):
            return False

        monkeypatch.setattr(habit_service, "_completion_exists", never_completed)

        with pytest.raises(AlreadyCompletedError):
            await complete_habit(db_session, None, profile.id, habit_id)

        await db_session.refresh(profile)
        assert (experience, currency) == (75, 20)
        assert profile.experience == experience
        assert profile.currency == currency
        assert profile.total_completions == 1
        assert await _completion_count(db_session, habit_id) == 1

    @pytest.mark.asyncio
    async def test_penalized_day_cannot_be_completed(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Run", category="physical")
        habit.created_at = datetime.now(timezone.utc) - timedelta(days=30)
        await db_session.commit()
        yesterday = utc_today() - timedelta(days=1)
        await assess_missed_habit(db_session, profile.id, habit.id, yesterday)
        experience, currency = profile.experience, profile.currency

        with pytest.raises(DayPenalizedError):
            await complete_habit(db_session, None, profile.id, habit.id, yesterday)

        await db_session.refresh(profile)
        assert profile.experience == experience
        assert profile.currency == currency
        assert await _completion_count(db_session, habit.id) == 0

    @pytest.mark.asyncio
    async def test_future_date_rejected(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Call mom", category="social")
        with pytest.raises(InvalidInputError):
            await complete_habit(db_session, None, profile.id, habit.id, utc_today() + timedelta(days=1))
        assert await _completion_count(db_session, habit.id) == 0

    @pytest.mark.asyncio
    async def test_other_users_habit_not_found(self, db_session: AsyncSession, profile: UserProfile):
        rival = await get_or_create_profile(db_session, "auth0|rival")
        habit = await create_habit(db_session, rival.id, name="Swim", category="physical")
        with pytest.raises(HabitNotFoundError):
            await complete_habit(db_session, None, profile.id, habit.id)

    @pytest.mark.asyncio
    async def test_inactive_habit_not_found(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Journal", category="mental")
        await delete_habit(db_session, profile.id, habit.id)
        with pytest.raises(HabitNotFoundError):
            await complete_habit(db_session, None, profile.id, habit.id)

    @pytest.mark.asyncio
    async def test_consecutive_days_build_streak(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Stretch", category="physical")
        today = utc_today()
        for offset in (2, 1, 0):
            await complete_habit(db_session, None, profile.id, habit.id, today - timedelta(days=offset))

        assert habit.current_streak == 3
        assert habit.longest_streak == 3
        assert profile.current_streak == 3
        assert profile.last_completed_on == today

    @pytest.mark.asyncio
    async def test_backfill_keeps_streak(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Stretch", category="physical")
        today = utc_today()
        await complete_habit(db_session, None, profile.id, habit.id, today)
        await complete_habit(db_session, None, profile.id, habit.id, today - timedelta(days=5))

        assert habit.current_streak == 1
        assert habit.total_completions == 2
        assert habit.last_completed_on == today


class TestHistory:
    @pytest.mark.asyncio
    async def test_soft_deleted_habit_keeps_history(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Run", category="physical")
        await complete_habit(db_session, None, profile.id, habit.id)
        await delete_habit(db_session, profile.id, habit.id)

        completions = await list_completions(db_session, profile.id)
        assert [c.habit_id for c in completions] == [habit.id]

    @pytest.mark.asyncio
    async def test_list_completions_for_day(self, db_session: AsyncSession, profile: UserProfile):
        habit = await create_habit(db_session, profile.id, name="Run", category="physical")
        today = utc_today()
        await complete_habit(db_session, None, profile.id, habit.id, today - timedelta(days=1))
        await complete_habit(db_session, None, profile.id, habit.id, today)

        assert len(await list_completions(db_session, profile.id)) == 2
        only_today = await list_completions(db_session, profile.id, today)
        assert [c.completed_on for c in only_today] == [today]

    @pytest.mark.asyncio
    async def test_weekly_progress(self, db_session: AsyncSession, profile: UserProfile):
        run = await create_habit(db_session, profile.id, name="Run", category="physical")
        read = await create_habit(db_session, profile.id, name="Read", category="knowledge")
        today = utc_today()
        await complete_habit(db_session, None, profile.id, run.id, today)
        await complete_habit(db_session, None, profile.id, read.id, today)
        await complete_habit(db_session, None, profile.id, run.id, today - timedelta(days=3))
        await complete_habit(db_session, None, profile.id, run.id, today - timedelta(days=8))

        days = await weekly_progress(db_session, profile.id, today)

        assert len(days) == 7
        assert days[0][0] == today - timedelta(days=6)
        assert days[-1] == (today, 2)
        assert dict(days)[today - timedelta(days=3)] == 1
        assert sum(count for _, count in days) == 3
