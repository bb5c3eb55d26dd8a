"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from questclash.auth.router import router as auth_router
from questclash.config import get_settings
from questclash.database import close_db, init_db
from questclash.gamification.router import router as gamification_router
from questclash.health.router import router as health_router
from questclash.leaderboard.router import router as leaderboard_router
from questclash.middleware import setup_middleware
from questclash.quests.router import router as quests_router
from questclash.redis_client import close_redis, init_redis
from questclash.rewards.router import router as rewards_router
from questclash.users.router import router as users_router
from questclash.voting.router import router as voting_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url, timeout=settings.store_timeout_seconds)
    await init_redis(settings.redis_url, timeout=settings.store_timeout_seconds)
    logger.info("startup", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="QuestClash API",
        description="Backend API for QuestClash, a community-validated quest and rewards platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(gamification_router)
    app.include_router(quests_router)
    app.include_router(voting_router)
    app.include_router(rewards_router)
    app.include_router(leaderboard_router)

    return app


app = create_app()
