"""Ledger endpoints: missed-habit assessment, penalties, rewards, summary."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.dependencies import get_current_user
from habitquest.database import get_session
from habitquest.db.models import UserProfile
from habitquest.ledger.schemas import (
    ClaimRewardRequest,
    LedgerSummaryResponse,
    MissHabitRequest,
    PenaltyListResponse,
    PenaltyResponse,
    RewardListResponse,
    RewardResponse,
)
from habitquest.ledger.service import (
    assess_missed_habit,
    list_penalties,
    list_rewards,
    mark_reward_claimed,
    summarize,
    to_cents,
)

router = APIRouter(prefix="/api/v1", tags=["Ledger"])


@router.post("/habits/{habit_id}/miss", response_model=PenaltyResponse, status_code=201)
async def miss_habit(
    habit_id: int,
    body: MissHabitRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PenaltyResponse:
    """Assess a past day on which the habit was not completed."""
    penalty = await assess_missed_habit(db, user.id, habit_id, body.date)
    return PenaltyResponse.model_validate(penalty)


@router.get("/penalties", response_model=PenaltyListResponse)
async def get_my_penalties(
    unpaid: bool = Query(False, description="Only unpaid penalties"),
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PenaltyListResponse:
    penalties = await list_penalties(db, user.id, unpaid_only=unpaid)
    return PenaltyListResponse(
        penalties=[PenaltyResponse.model_validate(p) for p in penalties],
        total=to_cents(sum((p.amount for p in penalties), 0)),
    )


@router.get("/rewards", response_model=RewardListResponse)
async def get_my_rewards(
    unclaimed: bool = Query(False, description="Only unclaimed rewards"),
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RewardListResponse:
    rewards = await list_rewards(db, user.id, unclaimed_only=unclaimed)
    return RewardListResponse(
        rewards=[RewardResponse.model_validate(r) for r in rewards],
        total=to_cents(sum((r.amount for r in rewards), 0)),
    )


@router.post("/rewards/{reward_id}/claim", response_model=RewardResponse)
async def claim_my_reward(
    reward_id: int,
    body: ClaimRewardRequest | None = None,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RewardResponse:
    """Mark a reward claimed. Claiming twice keeps the first transfer reference."""
    transfer_ref = body.transfer_reference if body is not None else None
    reward = await mark_reward_claimed(db, reward_id, transfer_ref, user_id=user.id)
    return RewardResponse.model_validate(reward)


@router.get("/ledger/summary", response_model=LedgerSummaryResponse)
async def get_my_ledger_summary(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LedgerSummaryResponse:
    summary = await summarize(db, user.id)
    return LedgerSummaryResponse(**asdict(summary))
