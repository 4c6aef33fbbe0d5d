"""Calendar month boundaries (UTC) and percentile math for leaderboards."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def current_year_month(now: datetime | None = None) -> tuple[int, int]:
    """(year, month) of the current UTC month."""
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc) if now.tzinfo else now
    return now.year, now.month


def previous_year_month(now: datetime | None = None) -> tuple[int, int]:
    """(year, month) of the UTC month before the current one."""
    year, month = current_year_month(now)
    if month == 1:
        return year - 1, 12
    return year, month - 1


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """Half-open [first day 00:00 UTC, first day of next month 00:00 UTC).

    Raises ValueError for a month outside 1..12.
    """
    if not 1 <= month <= 12:
        msg = f"month must be in 1..12, got {month}"
        raise ValueError(msg)
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def end_of_following_month(year: int, month: int) -> date:
    """Last calendar day of the month after (year, month)."""
    _, next_end = month_bounds(*_next(year, month))
    return (next_end - timedelta(days=1)).date()


def _next(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def calculate_percentile(rank: int, total: int) -> float:
    """Percentile of a 1-based rank among ``total`` ranked accounts.

    Rank 1 of 3 → 100.0, rank 2 of 3 → 50.0, rank 3 of 3 → 0.0.
    A lone account is at 100.
    """
    if total <= 0 or rank <= 0:
        return 0.0
    if total == 1:
        return 100.0
    return round(100 * (total - rank) / (total - 1), 2)
