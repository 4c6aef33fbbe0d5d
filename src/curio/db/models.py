"""ORM models for the Curio ledger, accounts, check-ins, quizzes and circles.

Column types use SQLite variants where PostgreSQL types have no portable
equivalent, so the same metadata builds the test schema.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from curio.db.base import Base

BigIntPK = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class Account(Base):
    """One row per user. Balance, title, streak and counters are denormalized for O(1) reads."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    balance_mcurio: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    title: Mapped[str] = mapped_column(
        String(64), nullable=False, default="Curious Newcomer", server_default="Curious Newcomer"
    )
    title_tier: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")

    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_checkin_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    questions_asked: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    quizzes_passed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    perfect_quizzes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    lessons_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    eli5_passed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    teach_backs_passed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    curio_club_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    curio_club_eligible_until: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class LedgerEntry(Base):
    """Immutable mCurio award log. The idempotency key is the exactly-once guard."""

    __tablename__ = "curio_ledger"
    __table_args__ = (
        Index("idx_curio_ledger_account_created", "account_id", "created_at"),
        Index("idx_curio_ledger_created", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    event_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    amount_mcurio: Mapped[int] = mapped_column(BigInteger, nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CheckinRecord(Base):
    """Daily check-in marker. UNIQUE(account_id, date_utc) bounds check-ins to one per UTC day."""

    __tablename__ = "daily_checkins"
    __table_args__ = (
        UniqueConstraint("account_id", "date_utc", name="daily_checkins_account_date_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    date_utc: Mapped[date] = mapped_column(Date, nullable=False)
    mcurio_awarded: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    trigger: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuizAttempt(Base):
    """Graded quiz attempt that produced a quiz_passed award."""

    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("account_id", "course_id", "attempt_number", name="quiz_attempts_account_course_attempt_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(128), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    score_percent: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(8), nullable=False)
    mcurio_awarded: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ProfileReset(Base):
    """Audit row for a profile reset recomputation. The ledger itself is never edited."""

    __tablename__ = "profile_resets"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    previous_balance_mcurio: Mapped[int] = mapped_column(BigInteger, nullable=False)
    new_balance_mcurio: Mapped[int] = mapped_column(BigInteger, nullable=False)
    previous_title: Mapped[str] = mapped_column(String(64), nullable=False)
    new_title: Mapped[str] = mapped_column(String(64), nullable=False)
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Circles
# ---------------------------------------------------------------------------


class Circle(Base):
    """Private invite-coded group with its own leaderboard."""

    __tablename__ = "circles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    invite_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    owner_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    max_members: Mapped[int] = mapped_column(Integer, nullable=False, default=20, server_default="20")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class CircleMember(Base):
    """Exactly one role per (circle, account)."""

    __tablename__ = "circle_members"
    __table_args__ = (
        UniqueConstraint("circle_id", "account_id", name="circle_members_circle_account_key"),
        Index("idx_circle_members_account", "account_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    circle_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("circles.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member", server_default="member")
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
