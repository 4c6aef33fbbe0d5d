"""Monthly Curio Club close: qualification gate, seat count, eligibility window."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from curio.db.models import Account, LedgerEntry
from curio.leaderboard.club_service import close_month, is_club_member
from curio.leaderboard.worker import ClubWorkerSettings, close_curio_club_month

pytestmark = pytest.mark.asyncio

MARCH = datetime(2026, 3, 5, 12, 0, tzinfo=timezone.utc)


async def _activity(db, account_id: str, balance: int, quiz_passes: int, when: datetime = MARCH) -> None:
    """One lesson worth ``balance`` plus ``quiz_passes`` passing quizzes of 1000 each."""
    db.add(LedgerEntry(
        account_id=account_id,
        event_kind="lesson_completed",
        amount_mcurio=balance,
        idempotency_key=f"lesson_completed:{account_id}:{when.isoformat()}",
        breakdown={},
        created_at=when,
    ))
    for i in range(quiz_passes):
        db.add(LedgerEntry(
            account_id=account_id,
            event_kind="quiz_passed",
            amount_mcurio=1000,
            idempotency_key=f"quiz_passed:{account_id}:{when.isoformat()}:{i}",
            breakdown={},
            created_at=when + timedelta(minutes=i + 1),
        ))
    await db.commit()


async def _account(db, account_id: str) -> Account:
    result = await db.execute(
        select(Account).where(Account.id == account_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _populate(db, new_account, qualified: int, casual: int = 0) -> None:
    """``qualified`` accounts with five quiz passes, ``casual`` richer accounts with none."""
    for n in range(qualified):
        account_id = f"q{n:02d}"
        await new_account(account_id)
        await _activity(db, account_id, 10_000 * (qualified - n), quiz_passes=5)
    for n in range(casual):
        account_id = f"casual{n}"
        await new_account(account_id)
        await _activity(db, account_id, 10_000_000, quiz_passes=0)


class TestCloseMonth:
    async def test_no_club_below_minimum_qualified(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=9, casual=3)

        result = await close_month(db_session, 2026, 3)

        assert result.total_ranked == 12
        assert result.qualified == 9
        assert result.members == []
        assert result.eligible_until is None
        assert (await _account(db_session, "q00")).curio_club_active is False

    async def test_top_tenth_of_qualified_join(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=12, casual=3)

        result = await close_month(db_session, 2026, 3)

        # ceil(12 * 0.1) seats, filled by qualified accounts only
        assert result.qualified == 12
        assert result.members == ["q00", "q01"]
        assert result.eligible_until == date(2026, 4, 30)

        top = await _account(db_session, "q00")
        assert top.curio_club_active is True
        assert top.curio_club_eligible_until == date(2026, 4, 30)
        assert (await _account(db_session, "q02")).curio_club_active is False
        assert (await _account(db_session, "casual0")).curio_club_active is False

    async def test_exactly_minimum_qualified_gets_one_seat(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        result = await close_month(db_session, 2026, 3)
        assert result.members == ["q00"]

    async def test_previous_members_deactivated(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        await new_account("veteran")
        veteran = await _account(db_session, "veteran")
        veteran.curio_club_active = True
        veteran.curio_club_eligible_until = date(2026, 3, 31)
        await db_session.commit()

        result = await close_month(db_session, 2026, 3)

        assert result.deactivated == 1
        veteran = await _account(db_session, "veteran")
        assert veteran.curio_club_active is False
        assert veteran.curio_club_eligible_until == date(2026, 3, 31)

    async def test_gate_failure_deactivates_everyone(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=3)
        member = await _account(db_session, "q00")
        member.curio_club_active = True
        await db_session.commit()

        result = await close_month(db_session, 2026, 3)

        assert result.members == []
        assert result.deactivated == 1
        assert (await _account(db_session, "q00")).curio_club_active is False

    async def test_rerun_is_stable(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        first = await close_month(db_session, 2026, 3)
        second = await close_month(db_session, 2026, 3)
        assert first.members == second.members == ["q00"]
        assert second.deactivated == 0
        assert (await _account(db_session, "q00")).curio_club_active is True

    async def test_defaults_to_previous_month(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        result = await close_month(db_session, now=datetime(2026, 4, 1, 0, 5, tzinfo=timezone.utc))
        assert (result.year, result.month) == (2026, 3)
        assert result.members == ["q00"]

    async def test_other_months_ignored(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        result = await close_month(db_session, 2026, 2)
        assert result.total_ranked == 0
        assert result.members == []

    async def test_december_window_ends_in_january(self, db_session, new_account):
        for n in range(10):
            await new_account(f"d{n}")
            await _activity(
                db_session, f"d{n}", 1000 * (10 - n), quiz_passes=5,
                when=datetime(2025, 12, 3, 9, 0, tzinfo=timezone.utc),
            )
        result = await close_month(db_session, 2025, 12)
        assert result.eligible_until == date(2026, 1, 31)


class TestIsClubMember:
    async def test_window_respected(self, db_session, new_account):
        account = await new_account("member")
        assert is_club_member(account) is False

        account.curio_club_active = True
        account.curio_club_eligible_until = date(2026, 4, 30)
        assert is_club_member(account, today=date(2026, 4, 30)) is True
        assert is_club_member(account, today=date(2026, 5, 1)) is False


class TestClubWorker:
    async def test_job_closes_requested_month(self, db_session, new_account):
        await _populate(db_session, new_account, qualified=10)
        assert await close_curio_club_month({}, 2026, 3) == 1
        assert (await _account(db_session, "q00")).curio_club_active is True

    async def test_job_registered(self):
        assert close_curio_club_month in ClubWorkerSettings.functions
