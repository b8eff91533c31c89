"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from questhunt.config import get_settings
from questhunt.database import close_db, init_db
from questhunt.health.router import router as health_router
from questhunt.hunts.router import router as hunts_router
from questhunt.leaderboard.router import router as leaderboard_router
from questhunt.locations.router import router as locations_router
from questhunt.middleware import setup_middleware
from questhunt.private_leaderboards.router import router as private_leaderboards_router
from questhunt.quests.router import router as quests_router
from questhunt.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="QuestHunt API",
        description="Backend API for QuestHunt: location quests, hunts and leaderboards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(quests_router)
    app.include_router(hunts_router)
    app.include_router(locations_router)
    app.include_router(leaderboard_router)
    app.include_router(private_leaderboards_router)

    return app


app = create_app()
