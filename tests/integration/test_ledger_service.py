"""Penalty/reward ledger tests (service level, SQLite)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.db.models import UserProfile, UserSkill
from habitquest.errors import (
    HabitNotMissedError,
    InvalidInputError,
    PenaltyNotFoundError,
    RewardNotFoundError,
)
from habitquest.gamification.unlock_service import get_skill_by_slug
from habitquest.habits.service import complete_habit, create_habit, utc_today
from habitquest.ledger.service import (
    assess_missed_habit,
    create_reward,
    get_unpaid_penalties,
    list_penalties,
    mark_penalties_paid,
    mark_penalty_paid,
    mark_reward_claimed,
    summarize,
    to_cents,
)
from habitquest.users.service import get_or_create_profile


@pytest.fixture
def yesterday():
    return utc_today() - timedelta(days=1)


async def _habit(db: AsyncSession, user_id: int, penalty: str = "15.00", age_days: int = 30):
    habit = await create_habit(db, user_id, name="Run", category="physical", penalty=Decimal(penalty))
    habit.created_at = datetime.now(timezone.utc) - timedelta(days=age_days)
    await db.commit()
    return habit


class TestToCents:
    @pytest.mark.parametrize(
        "value,expected",
        [(Decimal("7.505"), Decimal("7.51")), (Decimal("7.5"), Decimal("7.50")), (3, Decimal("3.00"))],
    )
    def test_rounding(self, value, expected):
        assert to_cents(value) == expected


class TestAssessMissedHabit:
    @pytest.mark.asyncio
    async def test_creates_penalty(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id)

        penalty = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

        assert penalty.amount == Decimal("15.00")
        assert penalty.missed_on == yesterday
        assert penalty.is_paid is False
        assert penalty.destination == "cause"
        assert "Run" in penalty.reason

    @pytest.mark.asyncio
    async def test_same_day_twice_returns_first(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id)

        first = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)
        second = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

        assert first.id == second.id
        assert len(await list_penalties(db_session, profile.id)) == 1

    @pytest.mark.asyncio
    async def test_today_is_not_assessable(self, db_session: AsyncSession, profile: UserProfile):
        habit = await _habit(db_session, profile.id)
        with pytest.raises(InvalidInputError):
            await assess_missed_habit(db_session, profile.id, habit.id, utc_today())

    @pytest.mark.asyncio
    async def test_day_before_habit_existed_rejected(self, db_session: AsyncSession, profile: UserProfile):
        habit = await _habit(db_session, profile.id, age_days=0)

        for days_back in (1, 400):
            with pytest.raises(InvalidInputError):
                await assess_missed_habit(db_session, profile.id, habit.id, utc_today() - timedelta(days=days_back))

        assert await list_penalties(db_session, profile.id) == []

    @pytest.mark.asyncio
    async def test_completed_day_is_not_missed(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id)
        await complete_habit(db_session, None, profile.id, habit.id, yesterday)

        with pytest.raises(HabitNotMissedError):
            await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

    @pytest.mark.asyncio
    async def test_zero_penalty_habit(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id, penalty="0")
        with pytest.raises(InvalidInputError):
            await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

    @pytest.mark.asyncio
    async def test_penalty_reduction_skill_halves_amount(
        self, db_session: AsyncSession, profile: UserProfile, yesterday
    ):
        skill = await get_skill_by_slug(db_session, "penalty-reduction")
        db_session.add(UserSkill(user_id=profile.id, skill_id=skill.id, skill=skill))
        await db_session.commit()
        habit = await _habit(db_session, profile.id)

        penalty = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

        assert penalty.amount == Decimal("7.50")


class TestSettlePenalties:
    @pytest.mark.asyncio
    async def test_first_reference_wins(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id)
        penalty = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)

        await mark_penalty_paid(db_session, penalty.id, "pi_first")
        again = await mark_penalty_paid(db_session, penalty.id, "pi_second")

        assert again.is_paid is True
        assert again.stripe_payment_intent_id == "pi_first"
        assert again.paid_at is not None

    @pytest.mark.asyncio
    async def test_foreign_penalty_not_found(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        rival = await get_or_create_profile(db_session, "auth0|rival")
        habit = await _habit(db_session, rival.id)
        penalty = await assess_missed_habit(db_session, rival.id, habit.id, yesterday)

        with pytest.raises(PenaltyNotFoundError):
            await mark_penalty_paid(db_session, penalty.id, "pi_x", user_id=profile.id)

    @pytest.mark.asyncio
    async def test_bulk_settlement(self, db_session: AsyncSession, profile: UserProfile):
        habit = await _habit(db_session, profile.id)
        today = utc_today()
        ids = [
            (await assess_missed_habit(db_session, profile.id, habit.id, today - timedelta(days=d))).id
            for d in (1, 2, 3)
        ]
        await mark_penalty_paid(db_session, ids[0], "pi_early")

        settled = await mark_penalties_paid(db_session, profile.id, ids, "pi_bulk")

        refs = {p.id: p.stripe_payment_intent_id for p in settled}
        assert refs == {ids[0]: "pi_early", ids[1]: "pi_bulk", ids[2]: "pi_bulk"}
        assert await list_penalties(db_session, profile.id, unpaid_only=True) == []

    @pytest.mark.asyncio
    async def test_unpaid_lookup_rejects_paid_ids(self, db_session: AsyncSession, profile: UserProfile, yesterday):
        habit = await _habit(db_session, profile.id)
        penalty = await assess_missed_habit(db_session, profile.id, habit.id, yesterday)
        await mark_penalty_paid(db_session, penalty.id, "pi_done")

        with pytest.raises(PenaltyNotFoundError):
            await get_unpaid_penalties(db_session, profile.id, [penalty.id])
        with pytest.raises(InvalidInputError):
            await get_unpaid_penalties(db_session, profile.id, [])


class TestRewards:
    @pytest.mark.asyncio
    async def test_claim_is_idempotent(self, db_session: AsyncSession, profile: UserProfile):
        reward = await create_reward(db_session, profile.id, Decimal("5"), "Bonus")

        await mark_reward_claimed(db_session, reward.id, "tr_first", user_id=profile.id)
        again = await mark_reward_claimed(db_session, reward.id, "tr_second", user_id=profile.id)

        assert again.is_claimed is True
        assert again.stripe_transfer_id == "tr_first"

    @pytest.mark.asyncio
    async def test_unknown_reward(self, db_session: AsyncSession, profile: UserProfile):
        with pytest.raises(RewardNotFoundError):
            await mark_reward_claimed(db_session, 9999, user_id=profile.id)

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, db_session: AsyncSession, profile: UserProfile):
        with pytest.raises(InvalidInputError):
            await create_reward(db_session, profile.id, Decimal("0"))


class TestSummary:
    @pytest.mark.asyncio
    async def test_empty_ledger(self, db_session: AsyncSession, profile: UserProfile):
        summary = await summarize(db_session, profile.id)
        assert summary.outstanding_penalties == Decimal("0.00")
        assert summary.unclaimed_rewards == Decimal("0.00")
        assert summary.unpaid_penalty_count == 0

    @pytest.mark.asyncio
    async def test_totals(self, db_session: AsyncSession, profile: UserProfile):
        habit = await _habit(db_session, profile.id, penalty="12.25")
        today = utc_today()
        first = await assess_missed_habit(db_session, profile.id, habit.id, today - timedelta(days=1))
        await assess_missed_habit(db_session, profile.id, habit.id, today - timedelta(days=2))
        await mark_penalty_paid(db_session, first.id, "pi_1")
        reward = await create_reward(db_session, profile.id, Decimal("3.10"))
        await create_reward(db_session, profile.id, Decimal("1.90"))
        await mark_reward_claimed(db_session, reward.id)

        summary = await summarize(db_session, profile.id)

        assert summary.outstanding_penalties == Decimal("12.25")
        assert summary.paid_penalties == Decimal("12.25")
        assert summary.unpaid_penalty_count == 1
        assert summary.unclaimed_rewards == Decimal("1.90")
        assert summary.claimed_rewards == Decimal("3.10")
        assert summary.unclaimed_reward_count == 1
