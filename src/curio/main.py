"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from curio.circles.router import router as circles_router
from curio.config import get_settings
from curio.database import close_db, init_db
from curio.health.router import router as health_router
from curio.leaderboard.router import router as leaderboard_router
from curio.middleware import setup_middleware
from curio.redis_client import close_redis, init_redis
from curio.rewards.router import router as rewards_router


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
        title="Curio API",
        description="Curio award ledger, streaks, titles and monthly leaderboards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rewards_router)
    app.include_router(leaderboard_router)
    app.include_router(circles_router)

    return app


app = create_app()
