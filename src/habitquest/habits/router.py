"""Habit endpoints: CRUD, completion and history."""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.dependencies import get_current_user
from habitquest.database import get_session
from habitquest.db.models import HabitCompletion, UserProfile
from habitquest.dependencies import get_redis_dep
from habitquest.habits.schemas import (
    CompleteHabitRequest,
    CompletionListResponse,
    CompletionResponse,
    CompletionResultResponse,
    HabitCreateRequest,
    HabitListResponse,
    HabitResponse,
    HabitUpdateRequest,
    WeeklyProgressEntry,
    WeeklyProgressResponse,
)
from habitquest.habits.service import (
    complete_habit,
    create_habit,
    delete_habit,
    get_habit,
    list_completions,
    list_habits,
    update_habit,
    weekly_progress,
)

router = APIRouter(prefix="/api/v1", tags=["Habits"])


def _completion_response(completion: HabitCompletion) -> CompletionResponse:
    return CompletionResponse(
        id=completion.id,
        habit_id=completion.habit_id,
        date=completion.completed_on,
        completed_at=completion.completed_at,
        exp_gained=completion.exp_gained,
    )


# ── Habits ──


@router.get("/habits", response_model=HabitListResponse)
async def list_my_habits(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> HabitListResponse:
    """List active habits, newest first."""
    habits = await list_habits(db, user.id)
    return HabitListResponse(habits=[HabitResponse.model_validate(h) for h in habits])


@router.post("/habits", response_model=HabitResponse, status_code=201)
async def create_my_habit(
    body: HabitCreateRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> HabitResponse:
    habit = await create_habit(db, user.id, **body.model_dump(exclude_none=True))
    return HabitResponse.model_validate(habit)


@router.get("/habits/{habit_id}", response_model=HabitResponse)
async def get_my_habit(
    habit_id: int,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> HabitResponse:
    habit = await get_habit(db, user.id, habit_id)
    return HabitResponse.model_validate(habit)


@router.patch("/habits/{habit_id}", response_model=HabitResponse)
async def update_my_habit(
    habit_id: int,
    body: HabitUpdateRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> HabitResponse:
    """Partially update a habit."""
    habit = await update_habit(db, user.id, habit_id, **body.model_dump(exclude_none=True))
    return HabitResponse.model_validate(habit)


@router.delete("/habits/{habit_id}", status_code=204)
async def delete_my_habit(
    habit_id: int,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Deactivate a habit. Its completions and penalties are kept."""
    await delete_habit(db, user.id, habit_id)


@router.post("/habits/{habit_id}/complete", response_model=CompletionResultResponse, status_code=201)
async def complete_my_habit(
    habit_id: int,
    body: CompleteHabitRequest | None = None,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
) -> CompletionResultResponse:
    """Complete a habit for today (or an explicit past date)."""
    on_date = body.date if body is not None else None
    outcome = await complete_habit(db, redis, user.id, habit_id, on_date)
    base = _completion_response(outcome.completion)
    return CompletionResultResponse(
        **base.model_dump(),
        level=outcome.level,
        level_up=outcome.leveled_up,
        unlocked_achievements=outcome.unlocked_achievements,
    )


# ── Completions ──


@router.get("/completions", response_model=CompletionListResponse)
async def list_my_completions(
    date: dt.date | None = Query(None, description="Only completions for this day"),
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CompletionListResponse:
    completions = await list_completions(db, user.id, date)
    return CompletionListResponse(completions=[_completion_response(c) for c in completions])


@router.get("/completions/weekly", response_model=WeeklyProgressResponse)
async def my_weekly_progress(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> WeeklyProgressResponse:
    """Completion counts for the last 7 days, oldest first."""
    days = await weekly_progress(db, user.id)
    return WeeklyProgressResponse(days=[WeeklyProgressEntry(date=d, count=c) for d, c in days])
