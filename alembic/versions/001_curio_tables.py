"""Curio tables.

Creates accounts, curio_ledger, daily_checkins, quiz_attempts,
profile_resets, circles and circle_members.

Revision ID: 001_curio_tables
Revises:
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_curio_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Accounts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id VARCHAR(64) PRIMARY KEY,
            display_name VARCHAR(64),
            avatar_url TEXT,
            balance_mcurio BIGINT NOT NULL DEFAULT 0,
            title VARCHAR(64) NOT NULL DEFAULT 'Curious Newcomer',
            title_tier INTEGER NOT NULL DEFAULT 1,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_checkin_date DATE,
            last_activity_at TIMESTAMPTZ,
            questions_asked INTEGER NOT NULL DEFAULT 0,
            quizzes_passed INTEGER NOT NULL DEFAULT 0,
            perfect_quizzes INTEGER NOT NULL DEFAULT 0,
            lessons_completed INTEGER NOT NULL DEFAULT 0,
            eli5_passed INTEGER NOT NULL DEFAULT 0,
            teach_backs_passed INTEGER NOT NULL DEFAULT 0,
            curio_club_active BOOLEAN NOT NULL DEFAULT false,
            curio_club_eligible_until DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS curio_ledger (
            id BIGSERIAL PRIMARY KEY,
            account_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            event_kind VARCHAR(32) NOT NULL,
            amount_mcurio BIGINT NOT NULL,
            idempotency_key VARCHAR(256) UNIQUE NOT NULL,
            source_id VARCHAR(128),
            breakdown JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_curio_ledger_account_created
        ON curio_ledger(account_id, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_curio_ledger_created
        ON curio_ledger(created_at)
    """)

    # --- Daily check-ins ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS daily_checkins (
            id BIGSERIAL PRIMARY KEY,
            account_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            date_utc DATE NOT NULL,
            mcurio_awarded BIGINT NOT NULL DEFAULT 0,
            trigger VARCHAR(32) NOT NULL DEFAULT 'manual',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT daily_checkins_account_date_key UNIQUE(account_id, date_utc)
        )
    """)

    # --- Quiz attempts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quiz_attempts (
            id BIGSERIAL PRIMARY KEY,
            account_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            course_id VARCHAR(128) NOT NULL,
            attempt_number INTEGER NOT NULL,
            score_percent INTEGER NOT NULL,
            difficulty VARCHAR(8) NOT NULL,
            mcurio_awarded BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT quiz_attempts_account_course_attempt_key UNIQUE(account_id, course_id, attempt_number)
        )
    """)

    # --- Profile resets (audit) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profile_resets (
            id BIGSERIAL PRIMARY KEY,
            account_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            previous_balance_mcurio BIGINT NOT NULL,
            new_balance_mcurio BIGINT NOT NULL,
            previous_title VARCHAR(64) NOT NULL,
            new_title VARCHAR(64) NOT NULL,
            breakdown JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Circles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS circles (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(50) NOT NULL,
            description VARCHAR(256),
            invite_code VARCHAR(8) UNIQUE NOT NULL,
            owner_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            max_members INTEGER NOT NULL DEFAULT 20,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS circle_members (
            id BIGSERIAL PRIMARY KEY,
            circle_id BIGINT NOT NULL REFERENCES circles(id) ON DELETE CASCADE,
            account_id VARCHAR(64) NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT circle_members_circle_account_key UNIQUE(circle_id, account_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_circle_members_account
        ON circle_members(account_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS circle_members CASCADE")
    op.execute("DROP TABLE IF EXISTS circles CASCADE")
    op.execute("DROP TABLE IF EXISTS profile_resets CASCADE")
    op.execute("DROP TABLE IF EXISTS quiz_attempts CASCADE")
    op.execute("DROP TABLE IF EXISTS daily_checkins CASCADE")
    op.execute("DROP TABLE IF EXISTS curio_ledger CASCADE")
    op.execute("DROP TABLE IF EXISTS accounts CASCADE")
