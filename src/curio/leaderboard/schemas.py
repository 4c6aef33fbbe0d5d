"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int | None = None
    account_id: str
    display_name: str | None = None
    title: str | None = None
    period_balance_mcurio: int
    period_balance_curio: float
    quiz_pass_count: int
    first_award_at: datetime | None = None
    percentile: float | None = None
    is_top_percentile: bool = False
    is_eligible: bool = False
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    scope: str
    circle_id: int | None = None
    year: int
    month: int
    total_ranked: int
    entries: list[LeaderboardEntryResponse]
    my_position: LeaderboardEntryResponse | None = None
