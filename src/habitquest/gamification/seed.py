"""Achievement and skill catalog seed data, upserted by slug on startup."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from habitquest.db.models import Achievement, Skill

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict[str, Any]] = [
    # Habit milestones
    {
        "slug": "first_step",
        "name": "First Step",
        "description": "Complete your first habit",
        "icon": "fas fa-shoe-prints",
        "category": "habit",
        "requirement": 1,
        "exp_reward": 25,
        "currency_reward": 10,
        "rarity": "common",
        "sort_order": 1,
    },
    {
        "slug": "iron_will",
        "name": "Iron Will",
        "description": "Complete 100 workouts",
        "icon": "fas fa-dumbbell",
        "category": "habit",
        "requirement": 100,
        "exp_reward": 500,
        "currency_reward": 250,
        "rarity": "rare",
        "sort_order": 2,
    },
    # Streaks
    {
        "slug": "week_warrior",
        "name": "Week Warrior",
        "description": "Keep a 7 day streak",
        "icon": "fas fa-calendar-week",
        "category": "streak",
        "requirement": 7,
        "exp_reward": 100,
        "currency_reward": 50,
        "rarity": "common",
        "sort_order": 3,
    },
    {
        "slug": "streak_master",
        "name": "Streak Master",
        "description": "Complete 14 days streak",
        "icon": "fas fa-fire",
        "category": "streak",
        "requirement": 14,
        "exp_reward": 200,
        "currency_reward": 100,
        "rarity": "epic",
        "sort_order": 4,
    },
    {
        "slug": "perfect_month",
        "name": "Perfect Month",
        "description": "30 days no missed habits",
        "icon": "fas fa-star",
        "category": "streak",
        "requirement": 30,
        "exp_reward": 2000,
        "currency_reward": 1000,
        "reward_amount": Decimal("5.00"),
        "rarity": "legendary",
        "sort_order": 5,
    },
    # Levels
    {
        "slug": "rising_shadow",
        "name": "Rising Shadow",
        "description": "Reach level 5",
        "icon": "fas fa-arrow-up",
        "category": "level",
        "requirement": 5,
        "exp_reward": 100,
        "currency_reward": 50,
        "rarity": "common",
        "sort_order": 6,
    },
    {
        "slug": "shadow_lord",
        "name": "Shadow Lord",
        "description": "Reach level 25",
        "icon": "fas fa-crown",
        "category": "level",
        "requirement": 25,
        "exp_reward": 1000,
        "currency_reward": 500,
        "rarity": "legendary",
        "sort_order": 7,
    },
    # Special (granted manually, never by the evaluator)
    {
        "slug": "founder",
        "name": "Founder",
        "description": "Joined during the first season",
        "icon": "fas fa-gem",
        "category": "special",
        "requirement": 0,
        "exp_reward": 0,
        "currency_reward": 0,
        "rarity": "legendary",
        "is_secret": True,
        "sort_order": 8,
    },
]

SKILL_SEED_DATA: list[dict[str, Any]] = [
    {
        "slug": "streak-shield",
        "name": "Streak Shield",
        "description": "Protect one missed day per week",
        "icon": "fas fa-shield-alt",
        "category": "passive",
        "tier": 1,
        "cost": 500,
        "required_level": 5,
        "effect": {"streak_protection_per_week": 1},
    },
    {
        "slug": "time-warp",
        "name": "Time Warp",
        "description": "Complete yesterday's missed habit",
        "icon": "fas fa-clock",
        "category": "active",
        "tier": 2,
        "cost": 800,
        "required_level": 10,
        "effect": {"backfill_days": 1},
    },
    {
        "slug": "exp-multiplier",
        "name": "EXP Multiplier",
        "description": "2x EXP for perfect weeks",
        "icon": "fas fa-bolt",
        "category": "passive",
        "tier": 3,
        "cost": 1200,
        "required_level": 15,
        "effect": {"perfect_week_exp_multiplier": 2},
    },
    {
        "slug": "penalty-reduction",
        "name": "Penalty Reduction",
        "description": "50% off financial penalties",
        "icon": "fas fa-coins",
        "category": "ultimate",
        "tier": 3,
        "cost": 2000,
        "required_level": 25,
        "effect": {"penalty_multiplier": 0.5},
    },
]


async def _upsert_by_slug(db: AsyncSession, model: type, rows: list[dict[str, Any]]) -> int:
    """Insert missing rows and refresh existing ones. Works on any dialect."""
    existing = {
        obj.slug: obj for obj in (await db.execute(select(model))).scalars()
    }
    for data in rows:
        obj = existing.get(data["slug"])
        if obj is None:
            db.add(model(**data))
        else:
            for key, value in data.items():
                setattr(obj, key, value)
    return len(rows)


async def seed_catalog(db: AsyncSession) -> tuple[int, int]:
    """Upsert all achievement and skill definitions. Returns (achievements, skills)."""
    achievements = await _upsert_by_slug(db, Achievement, ACHIEVEMENT_SEED_DATA)
    skills = await _upsert_by_slug(db, Skill, SKILL_SEED_DATA)
    await db.commit()
    logger.info("Seeded %d achievements and %d skills", achievements, skills)
    return achievements, skills
