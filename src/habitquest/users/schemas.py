"""Request/response schemas for profile endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class StatsResponse(BaseModel):
    strength: int
    intelligence: int
    discipline: int
    social: int


class ProfileResponse(BaseModel):
    id: int
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    level: int
    experience: int
    experience_to_next: int
    currency: int
    character_class: str
    title: str
    current_streak: int
    longest_streak: int
    last_completed_on: date | None = None
    total_completions: int
    total_achievements: int
    stats: StatsResponse
    created_at: datetime


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(default=None, max_length=320)
    first_name: str | None = Field(default=None, max_length=64)
    last_name: str | None = Field(default=None, max_length=64)
    profile_image_url: str | None = Field(default=None, max_length=2048)
    character_class: str | None = Field(default=None, min_length=1, max_length=64)
    title: str | None = Field(default=None, min_length=1, max_length=64)
