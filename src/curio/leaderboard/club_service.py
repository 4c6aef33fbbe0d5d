"""Monthly Curio Club close.

Run once at the start of a month for the month that just ended. Accounts
with at least ``club_min_quiz_passes`` quiz passes in the month qualify;
the top ``100 - club_percentile_cutoff`` percent of them (rounded up) join
the club until the end of the following month. Nothing is awarded when
fewer than ``club_min_users`` accounts qualify. Members from earlier
months who did not make it again are deactivated.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from curio.config import get_settings
from curio.db.models import Account
from curio.leaderboard.month_utils import end_of_following_month, month_bounds, previous_year_month
from curio.leaderboard.ranking import rank_rows
from curio.leaderboard.service import _aggregate_query

logger = logging.getLogger(__name__)


@dataclass
class ClubCloseResult:
    year: int
    month: int
    total_ranked: int
    qualified: int
    eligible_until: date | None
    members: list[str] = field(default_factory=list)
    deactivated: int = 0


def club_size(qualified: int, percentile_cutoff: float, min_users: int) -> int:
    """Number of club seats for ``qualified`` accounts; 0 below ``min_users``."""
    if qualified < min_users or qualified <= 0:
        return 0
    return math.ceil(qualified * (100 - percentile_cutoff) / 100)


async def close_month(
    db: AsyncSession,
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
) -> ClubCloseResult:
    """Mark the month's Curio Club and set each member's eligibility window.

    Defaults to the UTC month before ``now``. Safe to re-run: a second run
    for the same month sets the same flags.
    """
    settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    if year is None or month is None:
        year, month = previous_year_month(now)

    start, end = month_bounds(year, month)
    result = await db.execute(_aggregate_query(start, end, None))
    ranked = rank_rows(
        [dict(row._mapping) for row in result],
        percentile_cutoff=settings.club_percentile_cutoff,
        min_quiz_passes=settings.club_min_quiz_passes,
    )

    qualified = [r for r in ranked if int(r["quiz_pass_count"] or 0) >= settings.club_min_quiz_passes]
    seats = club_size(len(qualified), settings.club_percentile_cutoff, settings.club_min_users)
    members = [r["account_id"] for r in qualified[:seats]]
    eligible_until = end_of_following_month(year, month) if members else None

    if members:
        await db.execute(
            update(Account)
            .where(Account.id.in_(members))
            .values(curio_club_active=True, curio_club_eligible_until=eligible_until, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    stale = update(Account).where(Account.curio_club_active.is_(True))
    if members:
        stale = stale.where(Account.id.notin_(members))
    deactivated = await db.execute(
        stale.values(curio_club_active=False, updated_at=now).execution_options(synchronize_session=False)
    )
    await db.commit()

    logger.info(
        "Curio Club closed for %04d-%02d: %d ranked, %d qualified, %d members, %d deactivated",
        year,
        month,
        len(ranked),
        len(qualified),
        len(members),
        deactivated.rowcount,
    )
    return ClubCloseResult(
        year=year,
        month=month,
        total_ranked=len(ranked),
        qualified=len(qualified),
        eligible_until=eligible_until,
        members=members,
        deactivated=deactivated.rowcount,
    )


def is_club_member(account: Account, today: date | None = None) -> bool:
    """Club status as seen today; an expired window reads as inactive."""
    if not account.curio_club_active or account.curio_club_eligible_until is None:
        return False
    if today is None:
        today = datetime.now(timezone.utc).date()
    return today <= account.curio_club_eligible_until
