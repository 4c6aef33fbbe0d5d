"""Award, balance, ledger, check-in, reset and title endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from curio.auth.dependencies import get_current_account
from curio.database import get_session
from curio.db.models import Account
from curio.leaderboard.club_service import is_club_member
from curio.leaderboard.month_utils import current_year_month
from curio.leaderboard.service import LeaderboardScope, position_of
from curio.redis_client import get_optional_redis
from curio.rewards.award_service import AwardResult, award, daily_checkin, get_checkin_status
from curio.rewards.ledger import list_entries
from curio.rewards.reset_service import reset_profile
from curio.rewards.schemas import (
    AwardRequest,
    AwardResponse,
    BalanceResponse,
    CheckinRequest,
    CheckinStatusResponse,
    LedgerEntryResponse,
    LedgerResponse,
    PositionSummary,
    ResetResponse,
    StreakResponse,
    TitleEntry,
    TitleProgress,
    TitlesResponse,
)
from curio.rewards.scoring import mcurio_to_curio
from curio.rewards.streak_service import streak_state
from curio.rewards.titles import TITLES, next_title, next_title_progress

router = APIRouter(prefix="/api/v1", tags=["Curio"])


def _award_response(result: AwardResult) -> AwardResponse:
    return AwardResponse(
        new_balance_mcurio=result.new_balance,
        new_balance_curio=mcurio_to_curio(result.new_balance),
        amount_granted_mcurio=result.amount_granted,
        already_granted=result.already_granted,
        title_changed=result.title_changed,
        new_title=result.new_title,
        idempotency_key=result.idempotency_key,
        breakdown=result.breakdown,
        current_streak=result.current_streak,
    )


def _streak_response(account: Account) -> StreakResponse:
    state = streak_state(account)
    return StreakResponse(
        state=state.state,
        length=state.length,
        longest=state.longest,
        last_checkin_date=state.last_checkin_date,
    )


@router.post("/curio/award", response_model=AwardResponse)
async def award_endpoint(
    body: AwardRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    """Grant mCurio for an activity event. Retries with the same key are no-ops."""
    result = await award(db, redis, account.id, body.event_kind, body.context, body.idempotency_key)
    return _award_response(result)


@router.get("/curio", response_model=BalanceResponse)
async def get_balance(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Balance, title progress, streak and the current month's global position."""
    year, month = current_year_month()
    position = await position_of(db, account.id, LeaderboardScope.global_(), year, month)
    upcoming = next_title(account.balance_mcurio)
    progress = next_title_progress(account.balance_mcurio)

    return BalanceResponse(
        account_id=account.id,
        display_name=account.display_name,
        balance_mcurio=account.balance_mcurio,
        balance_curio=mcurio_to_curio(account.balance_mcurio),
        title=account.title,
        title_tier=account.title_tier,
        next_title=upcoming.name if upcoming else None,
        next_title_progress=TitleProgress(**progress) if progress else None,
        streak=_streak_response(account),
        stats={
            "questions_asked": account.questions_asked,
            "quizzes_passed": account.quizzes_passed,
            "perfect_quizzes": account.perfect_quizzes,
            "lessons_completed": account.lessons_completed,
            "eli5_passed": account.eli5_passed,
            "teach_backs_passed": account.teach_backs_passed,
        },
        position=PositionSummary(
            year=year,
            month=month,
            rank=position.rank,
            percentile=position.percentile,
            period_balance_mcurio=position.period_balance,
            is_eligible=position.is_eligible,
        ),
        curio_club_active=is_club_member(account),
        curio_club_eligible_until=account.curio_club_eligible_until,
    )


@router.get("/curio/ledger", response_model=LedgerResponse)
async def get_ledger(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    event_kind: str | None = Query(None, max_length=32),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Read-only export of the caller's ledger, newest first."""
    entries, total = await list_entries(
        db, account.id, limit=per_page, offset=(page - 1) * per_page, event_kind=event_kind,
    )
    return LedgerResponse(
        entries=[
            LedgerEntryResponse(
                id=e.id,
                event_kind=e.event_kind,
                amount_mcurio=e.amount_mcurio,
                idempotency_key=e.idempotency_key,
                source_id=e.source_id,
                breakdown=e.breakdown or {},
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/curio/checkin", response_model=AwardResponse)
async def checkin(
    body: CheckinRequest | None = None,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
    redis=Depends(get_optional_redis),
):
    """Claim today's check-in bonus. A second claim on the same UTC day is a no-op."""
    trigger = body.trigger if body is not None else "manual"
    result = await daily_checkin(db, redis, account.id, trigger)
    return _award_response(result)


@router.get("/curio/checkin", response_model=CheckinStatusResponse)
async def checkin_status(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Whether today's check-in was already claimed."""
    status = await get_checkin_status(db, account.id)
    return CheckinStatusResponse(**status, streak=_streak_response(account))


@router.post("/curio/reset", response_model=ResetResponse)
async def reset(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_session),
):
    """Recompute the balance from completed learning only, clearing engagement stats."""
    return ResetResponse(**await reset_profile(db, account.id))


@router.get("/titles", response_model=TitlesResponse)
async def list_titles():
    """The static title table, lowest tier first."""
    return TitlesResponse(titles=[
        TitleEntry(
            tier=t.tier,
            slug=t.slug,
            name=t.name,
            threshold_mcurio=t.threshold_mcurio,
            description=t.description,
        )
        for t in TITLES
    ])
