"""Pydantic models for penalties, rewards and the ledger summary."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class MissHabitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: dt.date


class PenaltyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    habit_id: int
    amount: Decimal
    destination: str
    reason: str | None = None
    missed_on: dt.date
    is_paid: bool
    stripe_payment_intent_id: str | None = None
    created_at: dt.datetime
    paid_at: dt.datetime | None = None


class PenaltyListResponse(BaseModel):
    penalties: list[PenaltyResponse]
    total: Decimal


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: Decimal
    reason: str | None = None
    is_claimed: bool
    stripe_transfer_id: str | None = None
    created_at: dt.datetime
    claimed_at: dt.datetime | None = None


class RewardListResponse(BaseModel):
    rewards: list[RewardResponse]
    total: Decimal


class ClaimRewardRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    transfer_reference: str | None = Field(default=None, max_length=128)


class LedgerSummaryResponse(BaseModel):
    outstanding_penalties: Decimal
    paid_penalties: Decimal
    unclaimed_rewards: Decimal
    claimed_rewards: Decimal
    unpaid_penalty_count: int
    unclaimed_reward_count: int
