"""Deterministic leaderboard ordering.

Accounts are ranked by period balance DESC, then by earliest first award in
the period ASC, then by account id ASC as the final tiebreaker. Ranks are
1-based ordinals with no gaps and no shared positions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from curio.leaderboard.month_utils import calculate_percentile

_FAR_FUTURE = datetime(9999, 12, 31, 23, 59, 59)


def sort_key(row: dict[str, Any]) -> tuple[int, datetime, str]:
    first = row.get("first_award_at") or _FAR_FUTURE
    if first.tzinfo is not None:
        first = first.replace(tzinfo=None)
    return (-row.get("period_balance", 0), first, row["account_id"])


def classify(
    rank: int,
    total: int,
    quiz_pass_count: int,
    percentile_cutoff: float,
    min_quiz_passes: int,
) -> dict[str, Any]:
    """Percentile plus the top-percentile and eligibility flags for one rank."""
    percentile = calculate_percentile(rank, total)
    is_top = percentile >= percentile_cutoff
    return {
        "rank": rank,
        "percentile": percentile,
        "is_top_percentile": is_top,
        "is_eligible": is_top and quiz_pass_count >= min_quiz_passes,
    }


def rank_rows(
    rows: list[dict[str, Any]],
    percentile_cutoff: float = 90.0,
    min_quiz_passes: int = 5,
) -> list[dict[str, Any]]:
    """Rank aggregated period rows.

    Input: dicts with at least account_id, period_balance, quiz_pass_count
    and first_award_at. Output: the same dicts sorted and augmented with
    rank, percentile, is_top_percentile and is_eligible.
    """
    if not rows:
        return []

    ordered = sorted(rows, key=sort_key)
    total = len(ordered)
    for idx, row in enumerate(ordered):
        row.update(classify(idx + 1, total, row.get("quiz_pass_count", 0), percentile_cutoff, min_quiz_passes))
    return ordered
