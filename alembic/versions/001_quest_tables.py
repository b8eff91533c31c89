"""Hunts, locations, quests and per-user progress.

Revision ID: 001_quest_tables
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_quest_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS hunts (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            question TEXT NOT NULL,
            answer TEXT NOT NULL,
            time_limit INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(256) NOT NULL,
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            radius INTEGER NOT NULL DEFAULT 50
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_locations_name ON locations(name)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(256) NOT NULL,
            description TEXT,
            collectible_id INTEGER,
            location_id BIGINT NOT NULL REFERENCES locations(id) ON DELETE CASCADE,
            created_by VARCHAR(64) NOT NULL,
            points_achievable INTEGER DEFAULT 0,
            is_active BOOLEAN DEFAULT true,
            hunt_id BIGINT REFERENCES hunts(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_quests_location_id ON quests(location_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_quests_hunt_id ON quests(hunt_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_quests (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            quest_id BIGINT NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            step VARCHAR(16) NOT NULL DEFAULT '0',
            is_complete BOOLEAN NOT NULL DEFAULT false,
            completed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_quests_user_quest UNIQUE (user_id, quest_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_quests_user_id ON user_quests(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_hunts (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            hunt_id BIGINT NOT NULL REFERENCES hunts(id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT false,
            time_limit INTEGER,
            started_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            CONSTRAINT uq_user_hunts_user_hunt UNIQUE (user_id, hunt_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_hunts_user_id ON user_hunts(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_hunts CASCADE")
    op.execute("DROP TABLE IF EXISTS user_quests CASCADE")
    op.execute("DROP TABLE IF EXISTS quests CASCADE")
    op.execute("DROP TABLE IF EXISTS locations CASCADE")
    op.execute("DROP TABLE IF EXISTS hunts CASCADE")
