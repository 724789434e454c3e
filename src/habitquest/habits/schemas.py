"""Request/response schemas for habit and completion endpoints."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HabitCategory = Literal["physical", "mental", "knowledge", "social"]
PenaltyDestination = Literal["political", "competitor", "cause"]


# --- Habits ---


class HabitCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=128)
    description: str | None = None
    category: HabitCategory
    icon: str | None = Field(default=None, max_length=64)
    exp_reward: int = Field(default=50, ge=0, le=10_000)
    penalty: Decimal = Field(default=Decimal("15.00"), ge=0, max_digits=10, decimal_places=2)
    penalty_destination: PenaltyDestination | None = None


class HabitUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    category: HabitCategory | None = None
    icon: str | None = Field(default=None, max_length=64)
    exp_reward: int | None = Field(default=None, ge=0, le=10_000)
    penalty: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    penalty_destination: PenaltyDestination | None = None


class HabitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    category: str
    icon: str
    exp_reward: int
    penalty: Decimal
    penalty_destination: str | None = None
    is_active: bool
    current_streak: int
    longest_streak: int
    total_completions: int
    last_completed_on: dt.date | None = None
    created_at: dt.datetime
    updated_at: dt.datetime


class HabitListResponse(BaseModel):
    habits: list[HabitResponse]


# --- Completions ---


class CompleteHabitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: dt.date | None = None


class CompletionResponse(BaseModel):
    id: int
    habit_id: int
    date: dt.date
    completed_at: dt.datetime
    exp_gained: int


class CompletionResultResponse(CompletionResponse):
    level: int
    level_up: bool
    unlocked_achievements: list[str] = []


class CompletionListResponse(BaseModel):
    completions: list[CompletionResponse]


class WeeklyProgressEntry(BaseModel):
    date: dt.date
    count: int


class WeeklyProgressResponse(BaseModel):
    days: list[WeeklyProgressEntry]
