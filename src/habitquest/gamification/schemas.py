"""Pydantic response models for achievement and skill endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict


# --- Achievements ---


class AchievementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slug: str
    name: str
    description: str | None = None
    icon: str
    category: str
    requirement: int
    exp_reward: int
    currency_reward: int
    reward_amount: Decimal
    rarity: str
    is_secret: bool = False


class AchievementListResponse(BaseModel):
    achievements: list[AchievementResponse]


class UserAchievementResponse(BaseModel):
    achievement: AchievementResponse
    progress: int
    unlocked_at: datetime


class UserAchievementsResponse(BaseModel):
    unlocked: list[UserAchievementResponse]
    total_available: int
    total_unlocked: int


class AchievementProgressEntry(BaseModel):
    achievement: AchievementResponse
    progress: int
    requirement: int
    unlocked: bool
    unlocked_at: datetime | None = None


class AchievementProgressResponse(BaseModel):
    achievements: list[AchievementProgressEntry]


# --- Skills ---


class SkillResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slug: str
    name: str
    description: str | None = None
    icon: str
    category: str
    tier: int
    cost: int
    required_level: int
    effect: dict[str, Any] = {}


class SkillListResponse(BaseModel):
    skills: list[SkillResponse]


class UserSkillResponse(BaseModel):
    skill: SkillResponse
    unlocked_at: datetime
    is_active: bool


class UserSkillsResponse(BaseModel):
    skills: list[UserSkillResponse]


class SkillUnlockResponse(UserSkillResponse):
    currency: int


# --- Evaluation ---


class UnlockEvaluationResponse(BaseModel):
    achievements: list[AchievementResponse]
    eligible_skills: list[SkillResponse]
    level: int
    experience: int
    currency: int
