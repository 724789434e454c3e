"""Profile lookup, lazy creation, updates and deletion."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from habitquest.db.models import UserProfile
from habitquest.errors import ProfileNotFoundError
from habitquest.gamification.progression import ProgressState, ProgressUpdate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

_UPDATABLE_FIELDS = ("email", "first_name", "last_name", "profile_image_url", "character_class", "title")


async def get_profile(db: AsyncSession, user_id: int) -> UserProfile:
    """Fetch a profile by id or raise ProfileNotFoundError."""
    result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise ProfileNotFoundError
    return profile


async def get_profile_by_external_id(db: AsyncSession, external_id: str) -> UserProfile | None:
    result = await db.execute(select(UserProfile).where(UserProfile.external_id == external_id))
    return result.scalar_one_or_none()


async def get_or_create_profile(
    db: AsyncSession,
    external_id: str,
    email: str | None = None,
) -> UserProfile:
    """
    Get the profile for an identity-provider subject, creating it on first sight.

    Two concurrent first requests race on UNIQUE(external_id); the loser
    re-reads the winner's row.
    """
    profile = await get_profile_by_external_id(db, external_id)
    if profile is not None:
        return profile

    profile = UserProfile(external_id=external_id, email=email)
    db.add(profile)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        profile = await get_profile_by_external_id(db, external_id)
        if profile is None:
            raise
        return profile

    logger.info("profile_created", user_id=profile.id, external_id=external_id)
    return profile


async def update_profile(db: AsyncSession, user_id: int, **fields: str | None) -> UserProfile:
    """Update editable identity fields; None values are left unchanged."""
    profile = await get_profile(db, user_id)
    for name in _UPDATABLE_FIELDS:
        value = fields.get(name)
        if value is not None:
            setattr(profile, name, value)
    profile.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return profile


async def delete_profile(db: AsyncSession, user_id: int) -> None:
    """Delete a profile; habits, completions, unlocks and ledger rows cascade."""
    profile = await get_profile(db, user_id)
    await db.delete(profile)
    await db.commit()
    logger.info("profile_deleted", user_id=user_id)


def progress_state(profile: UserProfile) -> ProgressState:
    return ProgressState(
        level=profile.level,
        experience=profile.experience,
        experience_to_next=profile.experience_to_next,
        currency=profile.currency,
    )


def apply_progress(profile: UserProfile, update: ProgressUpdate) -> None:
    """Copy a ProgressUpdate onto the profile row (no flush)."""
    profile.level = update.level
    profile.experience = update.experience
    profile.experience_to_next = update.experience_to_next
    profile.currency = update.currency
    profile.updated_at = datetime.now(timezone.utc)
