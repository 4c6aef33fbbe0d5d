"""Curio Club arq worker: closes the previous month once a month.

Import path for arq CLI: arq curio.leaderboard.worker.ClubWorkerSettings
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from curio.config import get_settings
from curio.database import close_db, get_session, init_db
from curio.leaderboard.club_service import close_month

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def close_curio_club_month(ctx: dict, year: int | None = None, month: int | None = None) -> int:
    """Close the Curio Club for a month (default: the previous UTC month). Returns the member count."""
    db = await _get_db_session()
    try:
        result = await close_month(db, year, month)
        return len(result.members)
    finally:
        await db.close()


async def club_startup(ctx: dict) -> None:
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("Curio Club worker started")


async def club_shutdown(ctx: dict) -> None:
    await close_db()
    logger.info("Curio Club worker stopped")


class ClubWorkerSettings:
    """arq worker settings for the monthly Curio Club close."""

    functions = [close_curio_club_month]
    on_startup = club_startup
    on_shutdown = club_shutdown
    max_jobs = 1
    job_timeout = 600
    # Cron defined when deploying via arq CLI: day 1 of each month, 00:05 UTC
