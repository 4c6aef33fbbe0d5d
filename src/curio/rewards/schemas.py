"""Pydantic request/response models for award, balance and title endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


# --- Award ---


class AwardRequest(BaseModel):
    event_kind: str = Field(..., max_length=32)
    context: dict[str, Any] = {}
    idempotency_key: str | None = Field(None, min_length=1, max_length=128)


class AwardResponse(BaseModel):
    new_balance_mcurio: int
    new_balance_curio: float
    amount_granted_mcurio: int
    already_granted: bool
    title_changed: bool
    new_title: str
    idempotency_key: str
    breakdown: dict[str, Any] = {}
    current_streak: int | None = None


# --- Balance ---


class TitleProgress(BaseModel):
    current: int
    required: int
    percentage: int


class StreakResponse(BaseModel):
    state: str
    length: int
    longest: int
    last_checkin_date: date | None = None


class PositionSummary(BaseModel):
    year: int
    month: int
    rank: int | None = None
    percentile: float | None = None
    period_balance_mcurio: int = 0
    is_eligible: bool = False


class BalanceResponse(BaseModel):
    account_id: str
    display_name: str | None = None
    balance_mcurio: int
    balance_curio: float
    title: str
    title_tier: int
    next_title: str | None = None
    next_title_progress: TitleProgress | None = None
    streak: StreakResponse
    stats: dict[str, int]
    position: PositionSummary
    curio_club_active: bool = False
    curio_club_eligible_until: date | None = None


# --- Ledger ---


class LedgerEntryResponse(BaseModel):
    id: int
    event_kind: str
    amount_mcurio: int
    idempotency_key: str
    source_id: str | None = None
    breakdown: dict[str, Any] = {}
    created_at: datetime


class LedgerResponse(BaseModel):
    entries: list[LedgerEntryResponse]
    total: int
    page: int
    per_page: int


# --- Check-in ---


class CheckinRequest(BaseModel):
    trigger: str = Field("manual", max_length=32)


class CheckinStatusResponse(BaseModel):
    checked_in: bool
    date_utc: date
    mcurio_awarded: int
    streak: StreakResponse


# --- Reset ---


class ResetResponse(BaseModel):
    previous_balance_mcurio: int
    new_balance_mcurio: int
    previous_title: str
    new_title: str
    breakdown: dict[str, Any]


# --- Titles ---


class TitleEntry(BaseModel):
    tier: int
    slug: str
    name: str
    threshold_mcurio: int
    description: str


class TitlesResponse(BaseModel):
    titles: list[TitleEntry]
