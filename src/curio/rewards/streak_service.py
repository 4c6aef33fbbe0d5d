"""Daily check-in streak tracking: state transitions and reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.db.models import Account, CheckinRecord, ProfileReset
from curio.errors import NotFound

logger = logging.getLogger(__name__)

STATE_NONE = "none"
STATE_ACTIVE = "active"
STATE_BROKEN = "broken"


@dataclass(frozen=True)
class StreakState:
    state: str
    length: int
    longest: int
    last_checkin_date: date | None


def utc_today(now: datetime | None = None) -> date:
    """Current UTC calendar date."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date() if now.tzinfo else now.date()


def apply_checkin(account: Account, checkin_date: date) -> bool:
    """Advance the streak for a new (non-duplicate) check-in.

    Yesterday → n+1, today → unchanged, anything else → 1.
    Returns True if the streak columns changed.
    """
    last = account.last_checkin_date
    if last == checkin_date:
        return False

    if last is not None and last == checkin_date - timedelta(days=1):
        account.current_streak += 1
    else:
        account.current_streak = 1

    account.longest_streak = max(account.longest_streak, account.current_streak)
    account.last_checkin_date = checkin_date
    return True


def streak_state(account: Account, today: date | None = None) -> StreakState:
    """Read-time state: active if the last check-in is today or yesterday."""
    if today is None:
        today = utc_today()
    last = account.last_checkin_date
    if last is None or account.current_streak == 0:
        return StreakState(STATE_NONE, 0, account.longest_streak, last)
    if last >= today - timedelta(days=1):
        return StreakState(STATE_ACTIVE, account.current_streak, account.longest_streak, last)
    return StreakState(STATE_BROKEN, 0, account.longest_streak, last)


def compute_streak_from_dates(dates: Iterable[date]) -> tuple[int, int, date | None]:
    """Recompute (current, longest, last) by replaying check-in dates in order.

    ``current`` is the run ending at the latest check-in; whether it is still
    alive is decided at read time by ``streak_state``.
    """
    current = longest = 0
    last: date | None = None
    for d in sorted(set(dates)):
        if last is not None and d == last + timedelta(days=1):
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        last = d
    return current, longest, last


async def reconcile_streak(db: AsyncSession, account_id: str) -> StreakState:
    """Recompute streak columns from check-in history and overwrite the account.

    Check-ins on or before the latest profile reset are ignored, since the
    reset zeroes streaks.
    """
    account = await db.get(Account, account_id)
    if account is None:
        raise NotFound(f"Account {account_id} not found")

    reset_at = (
        await db.execute(
            select(func.max(ProfileReset.created_at)).where(ProfileReset.account_id == account_id)
        )
    ).scalar_one_or_none()

    query = select(CheckinRecord.date_utc).where(CheckinRecord.account_id == account_id)
    if reset_at is not None:
        query = query.where(CheckinRecord.date_utc > utc_today(reset_at))
    dates = (await db.execute(query)).scalars().all()

    current, longest, last = compute_streak_from_dates(dates)
    if (current, longest, last) != (account.current_streak, account.longest_streak, account.last_checkin_date):
        logger.info(
            "Streak reconciled for %s: %d/%d -> %d/%d",
            account_id, account.current_streak, account.longest_streak, current, longest,
        )
    account.current_streak = current
    account.longest_streak = longest
    account.last_checkin_date = last
    account.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return streak_state(account)


async def get_checkin_for_date(db: AsyncSession, account_id: str, day: date) -> CheckinRecord | None:
    """The check-in record for a UTC date, if any."""
    result = await db.execute(
        select(CheckinRecord).where(
            CheckinRecord.account_id == account_id,
            CheckinRecord.date_utc == day,
        )
    )
    return result.scalar_one_or_none()
