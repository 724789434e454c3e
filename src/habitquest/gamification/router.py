"""Achievement and skill endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.dependencies import get_current_user
from habitquest.database import get_session
from habitquest.db.models import UserProfile, UserSkill
from habitquest.dependencies import get_redis_dep
from habitquest.gamification.schemas import (
    AchievementListResponse,
    AchievementProgressEntry,
    AchievementProgressResponse,
    AchievementResponse,
    SkillListResponse,
    SkillResponse,
    SkillUnlockResponse,
    UnlockEvaluationResponse,
    UserAchievementResponse,
    UserAchievementsResponse,
    UserSkillResponse,
    UserSkillsResponse,
)
from habitquest.gamification.unlock_service import (
    achievement_progress,
    evaluate_unlocks,
    get_user_achievements,
    get_user_skills,
    list_achievements,
    list_skills,
    unlock_skill,
)
from habitquest.users.service import get_profile

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _user_skill_response(user_skill: UserSkill) -> UserSkillResponse:
    return UserSkillResponse(
        skill=SkillResponse.model_validate(user_skill.skill),
        unlocked_at=user_skill.unlocked_at,
        is_active=user_skill.is_active,
    )


# ── Public catalog ──


@router.get("/achievements", response_model=AchievementListResponse)
async def get_achievements(db: AsyncSession = Depends(get_session)) -> AchievementListResponse:
    """Achievement catalog (secret entries hidden)."""
    achievements = await list_achievements(db)
    return AchievementListResponse(
        achievements=[AchievementResponse.model_validate(a) for a in achievements]
    )


@router.get("/skills", response_model=SkillListResponse)
async def get_skills(db: AsyncSession = Depends(get_session)) -> SkillListResponse:
    """Skill tree, ordered by tier."""
    skills = await list_skills(db)
    return SkillListResponse(skills=[SkillResponse.model_validate(s) for s in skills])


# ── Authenticated endpoints ──


@router.get("/users/me/achievements", response_model=UserAchievementsResponse)
async def get_my_achievements(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserAchievementsResponse:
    records = await get_user_achievements(db, user.id)
    total_available = len(await list_achievements(db))
    return UserAchievementsResponse(
        unlocked=[
            UserAchievementResponse(
                achievement=AchievementResponse.model_validate(r.achievement),
                progress=r.progress,
                unlocked_at=r.unlocked_at,
            )
            for r in records
        ],
        total_available=total_available,
        total_unlocked=len(records),
    )


@router.get("/users/me/achievements/progress", response_model=AchievementProgressResponse)
async def get_my_achievement_progress(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AchievementProgressResponse:
    """Progress toward every visible achievement."""
    entries = await achievement_progress(db, user.id)
    return AchievementProgressResponse(
        achievements=[
            AchievementProgressEntry(
                achievement=AchievementResponse.model_validate(e.achievement),
                progress=e.progress,
                requirement=e.achievement.requirement,
                unlocked=e.unlocked,
                unlocked_at=e.unlocked_at,
            )
            for e in entries
        ]
    )


@router.post("/users/me/unlocks/evaluate", response_model=UnlockEvaluationResponse)
async def evaluate_my_unlocks(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
) -> UnlockEvaluationResponse:
    """Unlock satisfied achievements and list skills that can be bought."""
    user_id = user.id
    result = await evaluate_unlocks(db, redis, user_id)
    profile = await get_profile(db, user_id)
    return UnlockEvaluationResponse(
        achievements=[AchievementResponse.model_validate(a) for a in result.achievements],
        eligible_skills=[SkillResponse.model_validate(s) for s in result.skills],
        level=profile.level,
        experience=profile.experience,
        currency=profile.currency,
    )


@router.get("/users/me/skills", response_model=UserSkillsResponse)
async def get_my_skills(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserSkillsResponse:
    user_skills = await get_user_skills(db, user.id)
    return UserSkillsResponse(skills=[_user_skill_response(us) for us in user_skills])


@router.post("/skills/{slug}/unlock", response_model=SkillUnlockResponse)
async def unlock_my_skill(
    slug: str,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SkillUnlockResponse:
    """Buy a skill. Owning it already is not an error and costs nothing."""
    user_id = user.id
    user_skill = await unlock_skill(db, user_id, slug)
    profile = await get_profile(db, user_id)
    return SkillUnlockResponse(
        **_user_skill_response(user_skill).model_dump(),
        currency=profile.currency,
    )
