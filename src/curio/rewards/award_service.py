"""mCurio award service with idempotency, title and streak updates.

The ledger insert and the account update share one transaction. The unique
idempotency key (and, for check-ins, the per-day check-in row) is the only
guard against double grants; there is no application-level locking.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from curio.config import get_settings
from curio.db.models import Account, CheckinRecord, LedgerEntry, QuizAttempt
from curio.errors import NotFound, Unavailable
from curio.rewards.scoring import (
    AwardComputation,
    EventKind,
    QuizContext,
    build_idempotency_key,
    compute_award,
    default_scope,
    scope_idempotency_key,
)
from curio.rewards.streak_service import apply_checkin, get_checkin_for_date, utc_today
from curio.rewards.titles import resolve_title

logger = logging.getLogger(__name__)


@dataclass
class AwardResult:
    new_balance: int
    amount_granted: int
    already_granted: bool
    title_changed: bool
    new_title: str
    idempotency_key: str
    breakdown: dict[str, Any] = field(default_factory=dict)
    current_streak: int | None = None


async def get_or_create_account(
    db: AsyncSession,
    account_id: str,
    display_name: str | None = None,
) -> Account:
    """Get or create the account row (called on first authentication)."""
    account = await db.get(Account, account_id)
    if account is not None:
        return account

    now = datetime.now(timezone.utc)
    account = Account(
        id=account_id,
        display_name=display_name,
        balance_mcurio=0,
        title=resolve_title(0).name,
        title_tier=resolve_title(0).tier,
        created_at=now,
        updated_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(account)
    except IntegrityError:
        # Created concurrently by another request
        account = await db.get(Account, account_id, populate_existing=True)
        if account is None:
            raise
    return account


async def get_entry_by_key(db: AsyncSession, idempotency_key: str) -> LedgerEntry | None:
    result = await db.execute(
        select(LedgerEntry).where(LedgerEntry.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none()


def _counter_updates(computation: AwardComputation) -> dict[str, Any]:
    """Auxiliary statistics bumped alongside the ledger insert."""
    kind = computation.kind
    if kind is EventKind.QUESTION_ASKED:
        return {"questions_asked": Account.questions_asked + 1}
    if kind is EventKind.LESSON_COMPLETED:
        return {"lessons_completed": Account.lessons_completed + 1}
    if kind is EventKind.ELI5_PASSED:
        return {"eli5_passed": Account.eli5_passed + 1}
    if kind is EventKind.TEACH_BACK_BONUS:
        return {"teach_backs_passed": Account.teach_backs_passed + 1}
    if kind is EventKind.QUIZ_PASSED and computation.amount_mcurio > 0:
        updates: dict[str, Any] = {"quizzes_passed": Account.quizzes_passed + 1}
        if computation.context.score_percent == 100:  # type: ignore[union-attr]
            updates["perfect_quizzes"] = Account.perfect_quizzes + 1
        return updates
    return {}


def _duplicate_result(account: Account, idempotency_key: str, entry: LedgerEntry | None) -> AwardResult:
    return AwardResult(
        new_balance=account.balance_mcurio,
        amount_granted=0,
        already_granted=True,
        title_changed=False,
        new_title=account.title,
        idempotency_key=idempotency_key,
        breakdown=dict(entry.breakdown) if entry is not None else {},
        current_streak=account.current_streak,
    )


async def award(
    db: AsyncSession,
    redis: object,
    account_id: str,
    event_kind: str | EventKind,
    context: dict[str, Any] | None,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> AwardResult:
    """Grant mCurio for an activity event exactly once per idempotency key.

    1. Score the event (InvalidEventKind / MissingContext before any write)
    2. Insert the ledger entry (plus check-in or quiz attempt row) in a savepoint
    3. Increment balance and counters, re-resolve the title, advance the streak
    4. Commit, then publish award / title-up events

    A duplicate key returns the current balance with already_granted=True.
    A caller-supplied key is namespaced under "<kind>:<account>:" so it can
    never match another account's entries.
    """
    computation = compute_award(event_kind, context)
    if now is None:
        now = datetime.now(timezone.utc)
    if idempotency_key is None:
        scope = default_scope(computation.kind, computation.context, now)  # type: ignore[arg-type]
        idempotency_key = build_idempotency_key(computation.kind, account_id, scope)
    else:
        idempotency_key = scope_idempotency_key(computation.kind, account_id, idempotency_key)

    try:
        result = await _apply_award(db, account_id, computation, idempotency_key, now)
    except DBAPIError as e:
        await db.rollback()
        logger.warning("Award store failure for %s (%s)", account_id, idempotency_key, exc_info=True)
        raise Unavailable("Award store temporarily unavailable; retry with the same key") from e

    if not result.already_granted:
        await _publish_award(redis, account_id, computation, result)
    return result


async def _apply_award(
    db: AsyncSession,
    account_id: str,
    computation: AwardComputation,
    idempotency_key: str,
    now: datetime,
) -> AwardResult:
    account = await db.get(Account, account_id)
    if account is None:
        raise NotFound(f"Account {account_id} not found")

    existing = await get_entry_by_key(db, idempotency_key)
    if existing is not None:
        return _duplicate_result(account, idempotency_key, existing)

    kind = computation.kind
    amount = computation.amount_mcurio
    checkin_date = utc_today(now)

    # Check-ins are also bounded per UTC day, whatever key the caller sent
    if kind is EventKind.DAILY_CHECKIN and await get_checkin_for_date(db, account_id, checkin_date):
        return _duplicate_result(account, idempotency_key, None)

    try:
        async with db.begin_nested():
            db.add(LedgerEntry(
                account_id=account_id,
                event_kind=kind.value,
                amount_mcurio=amount,
                idempotency_key=idempotency_key,
                source_id=_source_id(computation, checkin_date),
                breakdown=computation.breakdown,
                created_at=now,
            ))
            if kind is EventKind.DAILY_CHECKIN:
                db.add(CheckinRecord(
                    account_id=account_id,
                    date_utc=checkin_date,
                    mcurio_awarded=amount,
                    trigger=computation.context.trigger,  # type: ignore[union-attr]
                    created_at=now,
                ))
            elif kind is EventKind.QUIZ_PASSED:
                ctx: QuizContext = computation.context  # type: ignore[assignment]
                db.add(QuizAttempt(
                    account_id=account_id,
                    course_id=ctx.course_id,
                    attempt_number=ctx.attempt_number,
                    score_percent=ctx.score_percent,
                    difficulty=ctx.difficulty,
                    mcurio_awarded=amount,
                    created_at=now,
                ))
    except IntegrityError:
        logger.info("Concurrent duplicate award ignored: %s", idempotency_key)
        await db.refresh(account)
        return _duplicate_result(account, idempotency_key, await get_entry_by_key(db, idempotency_key))

    await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(
            balance_mcurio=Account.balance_mcurio + amount,
            last_activity_at=now,
            updated_at=now,
            **_counter_updates(computation),
        )
    )
    await db.refresh(account)

    old_tier = account.title_tier
    title = resolve_title(account.balance_mcurio)
    if title.tier != old_tier:
        account.title = title.name
        account.title_tier = title.tier
    title_changed = title.tier > old_tier

    if kind is EventKind.DAILY_CHECKIN:
        apply_checkin(account, checkin_date)

    await db.commit()

    logger.info(
        "Awarded %d mCurio to %s for %s (balance=%d)",
        amount, account_id, kind.value, account.balance_mcurio,
    )
    return AwardResult(
        new_balance=account.balance_mcurio,
        amount_granted=amount,
        already_granted=False,
        title_changed=title_changed,
        new_title=account.title,
        idempotency_key=idempotency_key,
        breakdown=computation.breakdown,
        current_streak=account.current_streak,
    )


def _source_id(computation: AwardComputation, checkin_date: Any) -> str | None:
    ctx = computation.context
    if computation.kind in (EventKind.DAILY_CHECKIN, EventKind.STREAK_MAINTAINED):
        return checkin_date.isoformat()
    return getattr(ctx, "course_id", None) or getattr(ctx, "question_id", None) or getattr(ctx, "submission_id", None)


async def _publish_award(
    redis: object,
    account_id: str,
    computation: AwardComputation,
    result: AwardResult,
) -> None:
    """Broadcast the award (and any title change) for toasts and live views."""
    if redis is None or not get_settings().publish_events:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:curio_award",
            json.dumps({
                "account_id": account_id,
                "event_kind": computation.kind.value,
                "amount_mcurio": result.amount_granted,
                "new_balance": result.new_balance,
            }),
        )
        if result.title_changed:
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:title_up",
                json.dumps({"account_id": account_id, "title": result.new_title}),
            )
    except Exception:
        logger.warning("Failed to publish curio_award broadcast", exc_info=True)


# ---------------------------------------------------------------------------
# Daily check-in
# ---------------------------------------------------------------------------


async def daily_checkin(
    db: AsyncSession,
    redis: object,
    account_id: str,
    trigger: str = "manual",
    now: datetime | None = None,
) -> AwardResult:
    """Grant the daily check-in bonus, at most once per UTC day."""
    return await award(db, redis, account_id, EventKind.DAILY_CHECKIN, {"trigger": trigger}, now=now)


async def get_checkin_status(db: AsyncSession, account_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Whether the account already checked in on the current UTC day."""
    today = utc_today(now)
    record = await get_checkin_for_date(db, account_id, today)
    return {
        "checked_in": record is not None,
        "date_utc": today,
        "mcurio_awarded": record.mcurio_awarded if record else 0,
    }
