"""Leaderboard, private leaderboards and the lb_add_points function.

lb_add_points(user_id, points) increments the user's current weekly,
monthly and overall rows, creating any that are missing. Period keys and
bounds match questhunt.leaderboard.periods (UTC, ISO weeks start Monday).

Revision ID: 002_leaderboard_tables
Revises: 001_quest_tables
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_leaderboard_tables"
down_revision: str | None = "001_quest_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboard (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            period_type VARCHAR(16) NOT NULL,
            period_key VARCHAR(32) NOT NULL,
            period_start TIMESTAMPTZ,
            period_end TIMESTAMPTZ,
            points INTEGER NOT NULL DEFAULT 0,
            rank INTEGER,
            CONSTRAINT uq_leaderboard_user_period UNIQUE (user_id, period_key)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_leaderboard_user_id ON leaderboard(user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_leaderboard_period_points ON leaderboard(period_key, points DESC)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS private_leaderboards (
            id BIGSERIAL PRIMARY KEY,
            owner_user_id VARCHAR(64) NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            cover_image TEXT,
            period_type VARCHAR(16),
            period_start TIMESTAMPTZ,
            period_end TIMESTAMPTZ,
            is_active BOOLEAN NOT NULL DEFAULT true,
            invite_code VARCHAR(8) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_private_leaderboards_owner_user_id ON private_leaderboards(owner_user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS private_leaderboard_members (
            id BIGSERIAL PRIMARY KEY,
            leaderboard_id BIGINT NOT NULL REFERENCES private_leaderboards(id) ON DELETE CASCADE,
            user_id VARCHAR(64) NOT NULL,
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_plb_members_board_user UNIQUE (leaderboard_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_private_leaderboard_members_user_id ON private_leaderboard_members(user_id)")

    op.execute("""
        CREATE OR REPLACE FUNCTION lb_add_points(in_user_id TEXT, in_points INTEGER)
        RETURNS VOID
        LANGUAGE plpgsql
        AS $$
        DECLARE
            now_utc TIMESTAMP := timezone('UTC', now());
            week_start TIMESTAMP := date_trunc('week', now_utc);
            month_start TIMESTAMP := date_trunc('month', now_utc);
            delta INTEGER := GREATEST(COALESCE(in_points, 0), 0);
        BEGIN
            INSERT INTO leaderboard (user_id, period_type, period_key, period_start, period_end, points)
            VALUES (
                in_user_id, 'weekly', 'weekly:' || to_char(week_start, 'YYYY-MM-DD'),
                week_start AT TIME ZONE 'UTC',
                (week_start + INTERVAL '7 days' - INTERVAL '1 millisecond') AT TIME ZONE 'UTC',
                delta
            )
            ON CONFLICT (user_id, period_key)
            DO UPDATE SET points = leaderboard.points + EXCLUDED.points;

            INSERT INTO leaderboard (user_id, period_type, period_key, period_start, period_end, points)
            VALUES (
                in_user_id, 'monthly', 'monthly:' || to_char(month_start, 'YYYY-MM'),
                month_start AT TIME ZONE 'UTC',
                (month_start + INTERVAL '1 month' - INTERVAL '1 millisecond') AT TIME ZONE 'UTC',
                delta
            )
            ON CONFLICT (user_id, period_key)
            DO UPDATE SET points = leaderboard.points + EXCLUDED.points;

            INSERT INTO leaderboard (user_id, period_type, period_key, period_start, period_end, points)
            VALUES (in_user_id, 'overall', 'overall', NULL, NULL, delta)
            ON CONFLICT (user_id, period_key)
            DO UPDATE SET points = leaderboard.points + EXCLUDED.points;
        END;
        $$
    """)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS lb_add_points(TEXT, INTEGER)")
    op.execute("DROP TABLE IF EXISTS private_leaderboard_members CASCADE")
    op.execute("DROP TABLE IF EXISTS private_leaderboards CASCADE")
    op.execute("DROP TABLE IF EXISTS leaderboard CASCADE")
