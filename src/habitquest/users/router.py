"""Profile endpoints: /api/v1/users/me."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.auth.dependencies import get_current_user
from habitquest.database import get_session
from habitquest.db.models import UserProfile
from habitquest.users.schemas import ProfileResponse, ProfileUpdateRequest, StatsResponse
from habitquest.users.service import delete_profile, update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def profile_response(profile: UserProfile) -> ProfileResponse:
    """Build a ProfileResponse from a UserProfile row."""
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        profile_image_url=profile.profile_image_url,
        level=profile.level,
        experience=profile.experience,
        experience_to_next=profile.experience_to_next,
        currency=profile.currency,
        character_class=profile.character_class,
        title=profile.title,
        current_streak=profile.current_streak,
        longest_streak=profile.longest_streak,
        last_completed_on=profile.last_completed_on,
        total_completions=profile.total_completions,
        total_achievements=profile.total_achievements,
        stats=StatsResponse(
            strength=profile.strength_stat,
            intelligence=profile.intelligence_stat,
            discipline=profile.discipline_stat,
            social=profile.social_stat,
        ),
        created_at=profile.created_at,
    )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(user: UserProfile = Depends(get_current_user)) -> ProfileResponse:
    """Get own profile with progression and stats."""
    return profile_response(user)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Update identity fields (progression fields are not writable)."""
    profile = await update_profile(db, user.id, **body.model_dump(exclude_none=True))
    return profile_response(profile)


@router.delete("/me", status_code=204)
async def delete_my_profile(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete the profile and everything it owns."""
    await delete_profile(db, user.id)
