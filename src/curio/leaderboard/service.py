"""Monthly leaderboard aggregation over the ledger, globally or per circle.

Rankings are never stored; every query sums the ledger for the requested
UTC month. ``position_of`` answers for one account with a count of the
accounts ahead of it and agrees with the row ``rank`` returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.config import get_settings
from curio.db.models import Account, Circle, CircleMember, LedgerEntry
from curio.errors import Forbidden, NotFound
from curio.leaderboard.month_utils import current_year_month, month_bounds
from curio.leaderboard.ranking import classify, rank_rows
from curio.rewards.scoring import EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardScope:
    kind: str = "global"
    circle_id: int | None = None

    @classmethod
    def global_(cls) -> LeaderboardScope:
        return cls("global")

    @classmethod
    def for_circle(cls, circle_id: int) -> LeaderboardScope:
        return cls("circle", circle_id)

    @property
    def is_circle(self) -> bool:
        return self.kind == "circle"


@dataclass
class LeaderboardRow:
    account_id: str
    period_balance: int
    quiz_pass_count: int
    first_award_at: datetime | None
    rank: int | None
    percentile: float | None
    is_top_percentile: bool
    is_eligible: bool
    display_name: str | None = None
    title: str | None = None


@dataclass
class LeaderboardPage:
    year: int
    month: int
    scope: LeaderboardScope
    total_ranked: int
    rows: list[LeaderboardRow] = field(default_factory=list)


async def _scope_members(
    db: AsyncSession,
    scope: LeaderboardScope,
    viewer_id: str | None,
) -> list[str] | None:
    """Candidate account ids for a circle scope; None means global."""
    if not scope.is_circle:
        return None

    circle = await db.get(Circle, scope.circle_id)
    if circle is None:
        raise NotFound(f"Circle {scope.circle_id} not found")

    result = await db.execute(
        select(CircleMember.account_id).where(CircleMember.circle_id == scope.circle_id)
    )
    members = list(result.scalars().all())
    if viewer_id is not None and viewer_id not in members:
        raise Forbidden("Not a member of this circle")
    return members


def _aggregate_query(start: datetime, end: datetime, members: list[str] | None) -> Any:
    quiz_passes = func.sum(
        case(
            (and_(LedgerEntry.event_kind == EventKind.QUIZ_PASSED.value, LedgerEntry.amount_mcurio > 0), 1),
            else_=0,
        )
    )
    query = (
        select(
            LedgerEntry.account_id.label("account_id"),
            func.sum(LedgerEntry.amount_mcurio).label("period_balance"),
            quiz_passes.label("quiz_pass_count"),
            func.min(LedgerEntry.created_at).label("first_award_at"),
        )
        .where(LedgerEntry.created_at >= start, LedgerEntry.created_at < end)
        .group_by(LedgerEntry.account_id)
    )
    if members is not None:
        query = query.where(LedgerEntry.account_id.in_(members))
    return query


def _account_id_ordering(column: Any, dialect_name: str) -> Any:
    """Account id compared bytewise, matching Python string order.

    PostgreSQL compares text with the database locale; "C" pins it to code
    point order so the count agrees with ``rank_rows``.
    """
    if dialect_name == "postgresql":
        return column.collate("C")
    return column


def _resolve_period(year: int | None, month: int | None) -> tuple[int, int, datetime, datetime]:
    cur_year, cur_month = current_year_month()
    year = year if year is not None else cur_year
    month = month if month is not None else cur_month
    start, end = month_bounds(year, month)
    return year, month, start, end


async def _enrich(db: AsyncSession, rows: list[LeaderboardRow]) -> None:
    """Attach display names and current titles."""
    if not rows:
        return
    result = await db.execute(
        select(Account.id, Account.display_name, Account.title).where(
            Account.id.in_([r.account_id for r in rows])
        )
    )
    info = {row.id: row for row in result}
    for r in rows:
        account = info.get(r.account_id)
        if account is not None:
            r.display_name = account.display_name
            r.title = account.title


def _to_row(data: dict[str, Any]) -> LeaderboardRow:
    return LeaderboardRow(
        account_id=data["account_id"],
        period_balance=int(data["period_balance"] or 0),
        quiz_pass_count=int(data["quiz_pass_count"] or 0),
        first_award_at=data["first_award_at"],
        rank=data.get("rank"),
        percentile=data.get("percentile"),
        is_top_percentile=data.get("is_top_percentile", False),
        is_eligible=data.get("is_eligible", False),
    )


async def rank(
    db: AsyncSession,
    scope: LeaderboardScope,
    year: int | None = None,
    month: int | None = None,
    limit: int | None = None,
    *,
    viewer_id: str | None = None,
) -> LeaderboardPage:
    """Ranked period balances for the scope, truncated to ``limit`` rows.

    Circle scope raises NotFound for an unknown circle and Forbidden when
    ``viewer_id`` is not a current member. An empty period gives no rows.
    """
    settings = get_settings()
    if limit is None:
        limit = settings.leaderboard_default_limit
    limit = max(1, min(limit, settings.leaderboard_max_limit))

    year, month, start, end = _resolve_period(year, month)
    members = await _scope_members(db, scope, viewer_id)
    if members is not None and not members:
        return LeaderboardPage(year, month, scope, 0)

    result = await db.execute(_aggregate_query(start, end, members))
    aggregates = [dict(row._mapping) for row in result]
    ranked = rank_rows(
        aggregates,
        percentile_cutoff=settings.club_percentile_cutoff,
        min_quiz_passes=settings.club_min_quiz_passes,
    )

    rows = [_to_row(r) for r in ranked[:limit]]
    await _enrich(db, rows)
    return LeaderboardPage(year, month, scope, len(ranked), rows)


async def position_of(
    db: AsyncSession,
    account_id: str,
    scope: LeaderboardScope,
    year: int | None = None,
    month: int | None = None,
    *,
    viewer_id: str | None = None,
) -> LeaderboardRow:
    """One account's row, computed by counting the accounts ranked ahead of it.

    An account with no ledger entries in the period gets rank and percentile
    None.
    """
    settings = get_settings()
    year, month, start, end = _resolve_period(year, month)
    members = await _scope_members(db, scope, viewer_id if viewer_id is not None else account_id)

    own = (
        await db.execute(
            _aggregate_query(start, end, members).where(LedgerEntry.account_id == account_id)
        )
    ).one_or_none()

    if own is None:
        row = LeaderboardRow(
            account_id=account_id,
            period_balance=0,
            quiz_pass_count=0,
            first_award_at=None,
            rank=None,
            percentile=None,
            is_top_percentile=False,
            is_eligible=False,
        )
        await _enrich(db, [row])
        return row

    agg = _aggregate_query(start, end, members).subquery()
    balance, first = own.period_balance, own.first_award_at
    account_col = _account_id_ordering(agg.c.account_id, db.get_bind().dialect.name)
    ahead = (
        await db.execute(
            select(func.count()).select_from(agg).where(
                or_(
                    agg.c.period_balance > balance,
                    and_(agg.c.period_balance == balance, agg.c.first_award_at < first),
                    and_(
                        agg.c.period_balance == balance,
                        agg.c.first_award_at == first,
                        account_col < account_id,
                    ),
                )
            )
        )
    ).scalar_one()
    total = (await db.execute(select(func.count()).select_from(agg))).scalar_one()

    data = dict(own._mapping)
    data.update(
        classify(
            ahead + 1,
            total,
            int(own.quiz_pass_count or 0),
            settings.club_percentile_cutoff,
            settings.club_min_quiz_passes,
        )
    )
    row = _to_row(data)
    await _enrich(db, [row])
    return row
