"""Leaderboard API endpoints: global and per-circle monthly rankings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from curio.auth.dependencies import get_current_account
from curio.database import get_session
from curio.db.models import Account
from curio.leaderboard.schemas import LeaderboardEntryResponse, LeaderboardResponse
from curio.leaderboard.service import LeaderboardPage, LeaderboardRow, LeaderboardScope, position_of, rank
from curio.rewards.scoring import mcurio_to_curio

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


def _entry(row: LeaderboardRow, viewer_id: str) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=row.rank,
        account_id=row.account_id,
        display_name=row.display_name,
        title=row.title,
        period_balance_mcurio=row.period_balance,
        period_balance_curio=mcurio_to_curio(row.period_balance),
        quiz_pass_count=row.quiz_pass_count,
        first_award_at=row.first_award_at,
        percentile=row.percentile,
        is_top_percentile=row.is_top_percentile,
        is_eligible=row.is_eligible,
        is_current_user=row.account_id == viewer_id,
    )


def _page_response(page: LeaderboardPage, me: LeaderboardRow, viewer_id: str) -> LeaderboardResponse:
    return LeaderboardResponse(
        scope=page.scope.kind,
        circle_id=page.scope.circle_id,
        year=page.year,
        month=page.month,
        total_ranked=page.total_ranked,
        entries=[_entry(r, viewer_id) for r in page.rows],
        my_position=_entry(me, viewer_id),
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def global_leaderboard(
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    limit: int | None = Query(None, ge=1),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Monthly global ranking plus the caller's own position."""
    scope = LeaderboardScope.global_()
    page = await rank(db, scope, year, month, limit, viewer_id=account.id)
    me = await position_of(db, account.id, scope, page.year, page.month)
    return _page_response(page, me, account.id)


@router.get("/leaderboard/position", response_model=LeaderboardEntryResponse)
async def my_position(
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    circle_id: int | None = Query(None),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """The caller's rank and percentile in the global or a circle scope."""
    scope = LeaderboardScope.for_circle(circle_id) if circle_id is not None else LeaderboardScope.global_()
    row = await position_of(db, account.id, scope, year, month)
    return _entry(row, account.id)


@router.get("/circles/{circle_id}/leaderboard", response_model=LeaderboardResponse)
async def circle_leaderboard(
    circle_id: int,
    year: int | None = Query(None, ge=2000, le=9999),
    month: int | None = Query(None, ge=1, le=12),
    limit: int | None = Query(None, ge=1),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Monthly ranking among the circle's current members (members only)."""
    scope = LeaderboardScope.for_circle(circle_id)
    page = await rank(db, scope, year, month, limit, viewer_id=account.id)
    me = await position_of(db, account.id, scope, page.year, page.month)
    return _page_response(page, me, account.id)
