"""Profile reset: recompute the balance from canonical learning activity.

Engagement rewards (questions, course starts, check-ins, streak bonuses) are
dropped from the recomputed balance. The ledger is never edited; the reset is
recorded as a ProfileReset audit row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.db.models import Account, ProfileReset, QuizAttempt
from curio.errors import NotFound
from curio.rewards.ledger import count_by_kind, sum_by_kind
from curio.rewards.scoring import EventKind
from curio.rewards.titles import resolve_title

logger = logging.getLogger(__name__)

CANONICAL_KINDS: tuple[EventKind, ...] = (
    EventKind.SECTION_COMPLETED,
    EventKind.LESSON_COMPLETED,
    EventKind.QUIZ_PASSED,
    EventKind.ELI5_PASSED,
    EventKind.TEACH_BACK_BONUS,
)


async def reset_profile(db: AsyncSession, account_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Recompute balance, title and counters from the canonical ledger kinds."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Account).where(Account.id == account_id).with_for_update()
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise NotFound(f"Account {account_id} not found")

    sums = await sum_by_kind(db, account_id, kinds=[k.value for k in CANONICAL_KINDS])
    per_kind = {k.value: sums.get(k.value, 0) for k in CANONICAL_KINDS}
    new_balance = sum(per_kind.values())

    quizzes_passed = await count_by_kind(db, account_id, EventKind.QUIZ_PASSED.value)
    lessons = await count_by_kind(db, account_id, EventKind.LESSON_COMPLETED.value, positive_only=False)
    eli5 = await count_by_kind(db, account_id, EventKind.ELI5_PASSED.value, positive_only=False)
    teach_backs = await count_by_kind(db, account_id, EventKind.TEACH_BACK_BONUS.value, positive_only=False)
    perfect = (
        await db.execute(
            select(func.count()).select_from(QuizAttempt).where(
                QuizAttempt.account_id == account_id,
                QuizAttempt.score_percent == 100,
                QuizAttempt.mcurio_awarded > 0,
            )
        )
    ).scalar_one()

    previous_balance = account.balance_mcurio
    previous_title = account.title
    title = resolve_title(new_balance)

    account.balance_mcurio = new_balance
    account.title = title.name
    account.title_tier = title.tier
    account.quizzes_passed = quizzes_passed
    account.perfect_quizzes = perfect
    account.lessons_completed = lessons
    account.eli5_passed = eli5
    account.teach_backs_passed = teach_backs
    account.questions_asked = 0
    account.current_streak = 0
    account.longest_streak = 0
    account.last_checkin_date = None
    account.updated_at = now

    breakdown = {
        "per_kind_mcurio": per_kind,
        "quizzes_passed": quizzes_passed,
        "perfect_quizzes": perfect,
        "lessons_completed": lessons,
        "eli5_passed": eli5,
        "teach_backs_passed": teach_backs,
    }
    db.add(ProfileReset(
        account_id=account_id,
        previous_balance_mcurio=previous_balance,
        new_balance_mcurio=new_balance,
        previous_title=previous_title,
        new_title=title.name,
        breakdown=breakdown,
        created_at=now,
    ))
    await db.commit()

    logger.info(
        "Profile reset for %s: %d -> %d mCurio (%s -> %s)",
        account_id, previous_balance, new_balance, previous_title, title.name,
    )
    return {
        "previous_balance_mcurio": previous_balance,
        "new_balance_mcurio": new_balance,
        "previous_title": previous_title,
        "new_title": title.name,
        "breakdown": breakdown,
    }
