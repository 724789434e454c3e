"""Achievement and skill unlock evaluator tests (service level, SQLite)."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.db.models import Achievement, Reward, UserAchievement, UserProfile, UserSkill
from habitquest.errors import InsufficientCurrencyError, InsufficientLevelError, SkillNotFoundError
from habitquest.gamification.seed import ACHIEVEMENT_SEED_DATA, seed_catalog
from habitquest.gamification.unlock_service import (
    achievement_progress,
    evaluate_achievements,
    evaluate_unlocks,
    unlock_skill,
)


async def _unlock_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(UserAchievement.id)).where(UserAchievement.user_id == user_id)
    )
    return result.scalar_one()


class TestEvaluateAchievements:
    """Counters: level, longest_streak, total_completions."""

    @pytest.mark.asyncio
    async def test_nothing_for_fresh_profile(self, db_session: AsyncSession, profile: UserProfile):
        result = await evaluate_unlocks(db_session, None, profile.id)
        assert result.achievements == []
        assert result.skills == []

    @pytest.mark.asyncio
    async def test_streak_achievements(self, db_session: AsyncSession, profile: UserProfile):
        profile.longest_streak = 14
        await db_session.commit()

        awarded = await evaluate_achievements(db_session, None, profile.id)

        assert {a.slug for a in awarded} == {"week_warrior", "streak_master"}
        assert profile.total_achievements == 2
        # 100 + 200 exp from a level 1 start: one level per bonus
        assert profile.experience == 300
        assert profile.level == 3
        assert profile.currency == 150

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session: AsyncSession, profile: UserProfile):
        profile.total_completions = 100
        await db_session.commit()

        first = await evaluate_achievements(db_session, None, profile.id)
        experience = profile.experience
        second = await evaluate_achievements(db_session, None, profile.id)

        assert {a.slug for a in first} == {"first_step", "iron_will"}
        assert second == []
        assert profile.experience == experience
        assert await _unlock_count(db_session, profile.id) == 2

    @pytest.mark.asyncio
    async def test_never_revoked(self, db_session: AsyncSession, profile: UserProfile):
        profile.longest_streak = 7
        await db_session.commit()
        await evaluate_achievements(db_session, None, profile.id)

        profile.longest_streak = 0
        await db_session.commit()
        await evaluate_achievements(db_session, None, profile.id)

        assert await _unlock_count(db_session, profile.id) == 1

    @pytest.mark.asyncio
    async def test_special_never_auto_unlocked(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 99
        profile.longest_streak = 999
        profile.total_completions = 999
        await db_session.commit()

        awarded = await evaluate_achievements(db_session, None, profile.id)

        assert "founder" not in {a.slug for a in awarded}
        assert len(awarded) == len([a for a in ACHIEVEMENT_SEED_DATA if a["category"] != "special"])

    @pytest.mark.asyncio
    async def test_money_reward_credited(self, db_session: AsyncSession, profile: UserProfile):
        profile.longest_streak = 30
        await db_session.commit()

        await evaluate_achievements(db_session, None, profile.id)

        rewards = (await db_session.execute(select(Reward).where(Reward.user_id == profile.id))).scalars().all()
        assert [r.amount for r in rewards] == [Decimal("5.00")]
        assert "Perfect Month" in rewards[0].reason

    @pytest.mark.asyncio
    async def test_progress_report(self, db_session: AsyncSession, profile: UserProfile):
        profile.total_completions = 73
        await db_session.commit()
        await evaluate_achievements(db_session, None, profile.id)

        entries = {e.achievement.slug: e for e in await achievement_progress(db_session, profile.id)}

        assert entries["iron_will"].progress == 73
        assert entries["iron_will"].unlocked is False
        assert entries["first_step"].unlocked is True
        assert entries["first_step"].progress == 1
        assert "founder" not in entries


class TestSkills:
    @pytest.mark.asyncio
    async def test_eligible_skills_reported_not_bought(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 10
        profile.currency = 900
        await db_session.commit()

        result = await evaluate_unlocks(db_session, None, profile.id)

        assert {s.slug for s in result.skills} == {"streak-shield", "time-warp"}
        owned = await db_session.execute(select(UserSkill).where(UserSkill.user_id == profile.id))
        assert owned.scalars().all() == []

    @pytest.mark.asyncio
    async def test_unlock_deducts_cost(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 5
        profile.currency = 600
        await db_session.commit()

        user_skill = await unlock_skill(db_session, profile.id, "streak-shield")

        assert user_skill.skill.slug == "streak-shield"
        assert profile.currency == 100

    @pytest.mark.asyncio
    async def test_unlock_twice_charges_once(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 5
        profile.currency = 1200
        await db_session.commit()

        first = await unlock_skill(db_session, profile.id, "streak-shield")
        second = await unlock_skill(db_session, profile.id, "streak-shield")

        assert first.id == second.id
        assert profile.currency == 700

    @pytest.mark.asyncio
    async def test_insufficient_level(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 4
        profile.currency = 10_000
        await db_session.commit()
        with pytest.raises(InsufficientLevelError):
            await unlock_skill(db_session, profile.id, "streak-shield")
        assert profile.currency == 10_000

    @pytest.mark.asyncio
    async def test_insufficient_currency(self, db_session: AsyncSession, profile: UserProfile):
        profile.level = 30
        profile.currency = 499
        await db_session.commit()
        with pytest.raises(InsufficientCurrencyError):
            await unlock_skill(db_session, profile.id, "streak-shield")

    @pytest.mark.asyncio
    async def test_unknown_skill(self, db_session: AsyncSession, profile: UserProfile):
        with pytest.raises(SkillNotFoundError):
            await unlock_skill(db_session, profile.id, "teleport")


class TestSeed:
    @pytest.mark.asyncio
    async def test_reseeding_is_idempotent(self, db_session: AsyncSession):
        await seed_catalog(db_session)
        await seed_catalog(db_session)
        count = (await db_session.execute(select(func.count(Achievement.id)))).scalar_one()
        assert count == len(ACHIEVEMENT_SEED_DATA)
