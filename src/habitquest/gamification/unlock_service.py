"""Achievement and skill unlock evaluation.

Unlocks are monotonic: a recorded UserAchievement/UserSkill is never revoked,
and UNIQUE(user, catalog entry) backs the pre-check against duplicates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from habitquest.db.models import Achievement, Skill, UserAchievement, UserProfile, UserSkill
from habitquest.errors import InsufficientCurrencyError, InsufficientLevelError, SkillNotFoundError
from habitquest.gamification.progression import apply_experience
from habitquest.ledger.service import add_reward
from habitquest.redis_client import publish_event
from habitquest.users.service import apply_progress, get_profile, progress_state

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Achievement category -> profile counter it is measured against.
# "special" achievements have no counter and are never auto-unlocked.
ACHIEVEMENT_COUNTERS: dict[str, str] = {
    "level": "level",
    "streak": "longest_streak",
    "habit": "total_completions",
}


@dataclass
class UnlockResult:
    achievements: list[Achievement] = field(default_factory=list)
    skills: list[Skill] = field(default_factory=list)


@dataclass
class AchievementProgress:
    achievement: Achievement
    progress: int
    unlocked: bool
    unlocked_at: datetime | None = None


def achievement_counter(profile: UserProfile, achievement: Achievement) -> int | None:
    """Current value of the counter an achievement is measured against."""
    attr = ACHIEVEMENT_COUNTERS.get(achievement.category)
    if attr is None:
        return None
    return getattr(profile, attr)


# ---------------------------------------------------------------------------
# Catalog & user records
# ---------------------------------------------------------------------------


async def list_achievements(db: AsyncSession, include_secret: bool = False) -> list[Achievement]:
    query = select(Achievement).order_by(Achievement.sort_order, Achievement.id)
    if not include_secret:
        query = query.where(Achievement.is_secret.is_(False))
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_skills(db: AsyncSession) -> list[Skill]:
    result = await db.execute(select(Skill).order_by(Skill.tier, Skill.id))
    return list(result.scalars().all())


async def get_skill_by_slug(db: AsyncSession, slug: str) -> Skill | None:
    result = await db.execute(select(Skill).where(Skill.slug == slug))
    return result.scalar_one_or_none()


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[UserAchievement]:
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id.desc())
    )
    return list(result.scalars().unique().all())


async def get_user_skills(db: AsyncSession, user_id: int) -> list[UserSkill]:
    result = await db.execute(
        select(UserSkill)
        .where(UserSkill.user_id == user_id)
        .order_by(UserSkill.unlocked_at, UserSkill.id)
    )
    return list(result.scalars().unique().all())


async def _unlocked_achievement_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    )
    return set(result.scalars().all())


async def _owned_skill_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(select(UserSkill.skill_id).where(UserSkill.user_id == user_id))
    return set(result.scalars().all())


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


async def _award_achievement(
    db: AsyncSession,
    redis: object,
    profile: UserProfile,
    achievement: Achievement,
    progress: int,
) -> bool:
    """Record one unlock and apply its bonuses. Returns False if it already existed.

    Steps:
    1. Insert user_achievements (UNIQUE constraint)
    2. Apply the exp bonus (single level-up rule) and currency bonus
    3. Bump total_achievements
    4. Credit a Reward when the achievement carries a money amount
    5. Commit, then publish achievement_unlocked
    """
    user_id = profile.id
    db.add(UserAchievement(user_id=user_id, achievement_id=achievement.id, progress=progress))

    update = apply_experience(progress_state(profile), achievement.exp_reward)
    apply_progress(profile, update)
    profile.currency += achievement.currency_reward
    profile.total_achievements += 1

    if achievement.reward_amount > 0:
        add_reward(db, user_id, achievement.reward_amount, f'Achievement unlocked: "{achievement.name}"')

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Achievement %s already unlocked for user %s", achievement.slug, user_id)
        return False

    logger.info("Achievement %s unlocked for user %s", achievement.slug, user_id)
    await publish_event(redis, "achievement_unlocked", {
        "user_id": user_id,
        "achievement_slug": achievement.slug,
        "achievement_name": achievement.name,
        "rarity": achievement.rarity,
        "exp_reward": achievement.exp_reward,
        "currency_reward": achievement.currency_reward,
    })
    if update.leveled_up:
        await publish_event(redis, "level_up", {
            "user_id": user_id,
            "new_level": update.level,
            "experience": update.experience,
        })
    return True


async def evaluate_achievements(db: AsyncSession, redis: object, user_id: int) -> list[Achievement]:
    """Unlock every newly satisfied achievement. Returns the ones unlocked now.

    Catalog order matters: an achievement's exp bonus can raise the level,
    which a later level achievement in the same pass then sees.
    """
    unlocked_ids = await _unlocked_achievement_ids(db, user_id)
    catalog_ids = [a.id for a in await list_achievements(db, include_secret=True)]
    awarded_ids: list[int] = []

    # Rows are re-fetched by id on every step: a rollback expires the session.
    for achievement_id in catalog_ids:
        if achievement_id in unlocked_ids:
            continue
        achievement = await db.get(Achievement, achievement_id)
        profile = await get_profile(db, user_id)
        counter = achievement_counter(profile, achievement)
        if counter is None or counter < achievement.requirement:
            continue
        progress = min(counter, achievement.requirement)
        if await _award_achievement(db, redis, profile, achievement, progress):
            awarded_ids.append(achievement_id)

    return [await db.get(Achievement, achievement_id) for achievement_id in awarded_ids]


async def achievement_progress(db: AsyncSession, user_id: int) -> list[AchievementProgress]:
    """Progress toward every visible achievement; secret ones appear once unlocked."""
    profile = await get_profile(db, user_id)
    unlocked = {ua.achievement_id: ua for ua in await get_user_achievements(db, user_id)}

    entries: list[AchievementProgress] = []
    for achievement in await list_achievements(db, include_secret=True):
        record = unlocked.get(achievement.id)
        if achievement.is_secret and record is None:
            continue
        counter = achievement_counter(profile, achievement)
        progress = min(counter or 0, achievement.requirement)
        if record is not None:
            progress = max(record.progress, progress)
        entries.append(AchievementProgress(
            achievement=achievement,
            progress=progress,
            unlocked=record is not None,
            unlocked_at=record.unlocked_at if record is not None else None,
        ))
    return entries


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


async def eligible_skills(db: AsyncSession, user_id: int) -> list[Skill]:
    """Skills the user could buy right now. Never purchased automatically."""
    profile = await get_profile(db, user_id)
    owned = await _owned_skill_ids(db, user_id)
    return [
        skill
        for skill in await list_skills(db)
        if skill.id not in owned
        and profile.level >= skill.required_level
        and profile.currency >= skill.cost
    ]


async def evaluate_unlocks(db: AsyncSession, redis: object, user_id: int) -> UnlockResult:
    """Unlock satisfied achievements and report newly eligible skills."""
    achievements = await evaluate_achievements(db, redis, user_id)
    skills = await eligible_skills(db, user_id)
    return UnlockResult(achievements=achievements, skills=skills)


async def unlock_skill(db: AsyncSession, user_id: int, skill_slug: str) -> UserSkill:
    """Buy a skill with currency.

    Already owned skills are returned as they are, without a second charge.
    """
    skill = await get_skill_by_slug(db, skill_slug)
    if skill is None:
        raise SkillNotFoundError

    result = await db.execute(
        select(UserSkill).where(UserSkill.user_id == user_id, UserSkill.skill_id == skill.id)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing

    profile = await get_profile(db, user_id)
    if profile.level < skill.required_level:
        raise InsufficientLevelError(
            f"Level {skill.required_level} required to unlock {skill.name}"
        )
    if profile.currency < skill.cost:
        raise InsufficientCurrencyError(
            f"{skill.cost} currency required to unlock {skill.name}"
        )

    user_skill = UserSkill(user_id=user_id, skill_id=skill.id, skill=skill)
    db.add(user_skill)
    profile.currency -= skill.cost
    profile.updated_at = datetime.now(timezone.utc)

    try:
        await db.commit()
    except IntegrityError:
        # Concurrent purchase won; this one is not charged.
        await db.rollback()
        result = await db.execute(
            select(UserSkill).where(UserSkill.user_id == user_id, UserSkill.skill_id == skill.id)
        )
        return result.scalar_one()

    logger.info("Skill %s unlocked for user %s (-%d currency)", skill.slug, user_id, skill.cost)
    return user_skill
