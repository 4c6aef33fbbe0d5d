"""Read-only access to the mCurio ledger."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from curio.db.models import LedgerEntry


async def list_entries(
    db: AsyncSession,
    account_id: str,
    limit: int = 50,
    offset: int = 0,
    event_kind: str | None = None,
) -> tuple[list[LedgerEntry], int]:
    """Paginated ledger export for one account, newest first.

    Returns (entries, total_count).
    """
    base = select(LedgerEntry).where(LedgerEntry.account_id == account_id)
    count_query = select(func.count()).select_from(LedgerEntry).where(LedgerEntry.account_id == account_id)
    if event_kind is not None:
        base = base.where(LedgerEntry.event_kind == event_kind)
        count_query = count_query.where(LedgerEntry.event_kind == event_kind)

    total = (await db.execute(count_query)).scalar_one()
    result = await db.execute(
        base.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def sum_by_kind(
    db: AsyncSession,
    account_id: str,
    kinds: Iterable[str] | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
) -> dict[str, int]:
    """Total mCurio per event kind, optionally filtered by kind and [since, until)."""
    query = (
        select(LedgerEntry.event_kind, func.coalesce(func.sum(LedgerEntry.amount_mcurio), 0))
        .where(LedgerEntry.account_id == account_id)
        .group_by(LedgerEntry.event_kind)
    )
    if kinds is not None:
        query = query.where(LedgerEntry.event_kind.in_(list(kinds)))
    if since is not None:
        query = query.where(LedgerEntry.created_at >= since)
    if until is not None:
        query = query.where(LedgerEntry.created_at < until)

    result = await db.execute(query)
    return {kind: int(total) for kind, total in result.all()}


async def count_by_kind(db: AsyncSession, account_id: str, kind: str, positive_only: bool = True) -> int:
    """Number of ledger entries of one kind (by default only those that granted mCurio)."""
    query = select(func.count()).select_from(LedgerEntry).where(
        LedgerEntry.account_id == account_id,
        LedgerEntry.event_kind == kind,
    )
    if positive_only:
        query = query.where(LedgerEntry.amount_mcurio > 0)
    return (await db.execute(query)).scalar_one()
