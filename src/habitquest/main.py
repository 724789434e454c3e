"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from habitquest.config import get_settings
from habitquest.database import close_db, create_schema, get_session, init_db
from habitquest.gamification.router import router as gamification_router
from habitquest.gamification.seed import seed_catalog
from habitquest.habits.router import router as habits_router
from habitquest.health.router import router as health_router
from habitquest.ledger.router import router as ledger_router
from habitquest.middleware import setup_middleware
from habitquest.payments.router import router as payments_router
from habitquest.redis_client import close_redis, init_redis
from habitquest.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)

    if settings.auto_create_schema:
        await create_schema()

    # Seed achievement and skill catalog (idempotent)
    if settings.seed_catalog_on_startup:
        try:
            async for db in get_session():
                await seed_catalog(db)
                break
        except Exception:
            logger.warning("Catalog seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="HabitQuest API",
        description="Backend API for HabitQuest, a gamified habit tracker with real-money stakes",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(habits_router)
    app.include_router(gamification_router)
    app.include_router(ledger_router)
    app.include_router(payments_router)

    return app


app = create_app()
