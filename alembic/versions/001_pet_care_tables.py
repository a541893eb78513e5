"""Couples, pets, care log, milestones, messages, and mini-game sessions.

Revision ID: 001_pet_care_tables
Revises: None
Create Date: 2026-03-01
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_pet_care_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users (mirrors the external auth service) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            display_name VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Couples ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS couples (
            id BIGSERIAL PRIMARY KEY,
            user1_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            user2_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_couples_users UNIQUE (user1_id, user2_id),
            CHECK (user1_id < user2_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_couples_user2
        ON couples(user2_id)
    """)

    # --- Pets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS pets (
            id BIGSERIAL PRIMARY KEY,
            couple_id BIGINT NOT NULL REFERENCES couples(id) ON DELETE CASCADE,
            name VARCHAR(64) NOT NULL,
            species VARCHAR(16) NOT NULL,
            color VARCHAR(32) NOT NULL DEFAULT 'default',
            stage VARCHAR(16) NOT NULL DEFAULT 'egg',
            hunger INTEGER NOT NULL DEFAULT 100 CHECK (hunger BETWEEN 0 AND 100),
            happiness INTEGER NOT NULL DEFAULT 100 CHECK (happiness BETWEEN 0 AND 100),
            energy INTEGER NOT NULL DEFAULT 100 CHECK (energy BETWEEN 0 AND 100),
            cleanliness INTEGER CHECK (cleanliness BETWEEN 0 AND 100),
            xp BIGINT NOT NULL DEFAULT 0 CHECK (xp >= 0),
            streak_days INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_care_date DATE,
            combo_count INTEGER NOT NULL DEFAULT 0,
            last_care_at TIMESTAMPTZ,
            last_actor_id BIGINT,
            personality JSONB NOT NULL DEFAULT '{}'::jsonb,
            action_counts JSONB NOT NULL DEFAULT '{}'::jsonb,
            action_timestamps JSONB NOT NULL DEFAULT '{}'::jsonb,
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_pets_active_per_couple
        ON pets(couple_id) WHERE is_active
    """)

    # --- Care action audit log ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS care_actions (
            id BIGSERIAL PRIMARY KEY,
            pet_id BIGINT NOT NULL REFERENCES pets(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            action_type VARCHAR(16) NOT NULL,
            xp_awarded INTEGER NOT NULL,
            co_op_bonus BOOLEAN NOT NULL DEFAULT FALSE,
            combo INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_care_actions_pet_created
        ON care_actions(pet_id, created_at)
    """)

    # --- Milestones ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS milestones (
            id BIGSERIAL PRIMARY KEY,
            couple_id BIGINT NOT NULL REFERENCES couples(id) ON DELETE CASCADE,
            milestone_type VARCHAR(64) NOT NULL,
            evolution_unlocked VARCHAR(16),
            celebrated_by BIGINT,
            achieved_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_milestones_couple_type UNIQUE (couple_id, milestone_type)
        )
    """)

    # --- Pet messages ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS pet_messages (
            id BIGSERIAL PRIMARY KEY,
            pet_id BIGINT NOT NULL REFERENCES pets(id) ON DELETE CASCADE,
            message TEXT NOT NULL,
            message_type VARCHAR(16) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_pet_messages_pet_created
        ON pet_messages(pet_id, created_at DESC)
    """)

    # --- Mini-game sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS game_sessions (
            id BIGSERIAL PRIMARY KEY,
            pet_id BIGINT NOT NULL REFERENCES pets(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            partner_user_id BIGINT,
            game_type VARCHAR(32) NOT NULL,
            is_coop BOOLEAN NOT NULL DEFAULT FALSE,
            started_at TIMESTAMPTZ NOT NULL,
            partner_joined_at TIMESTAMPTZ,
            raw_score INTEGER,
            accuracy DOUBLE PRECISION,
            final_score INTEGER,
            rank VARCHAR(16),
            coop_bonus BOOLEAN NOT NULL DEFAULT FALSE,
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            completed_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_game_sessions_high_scores
        ON game_sessions(game_type, final_score DESC)
        WHERE completed_at IS NOT NULL
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS game_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS pet_messages CASCADE")
    op.execute("DROP TABLE IF EXISTS milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS care_actions CASCADE")
    op.execute("DROP TABLE IF EXISTS pets CASCADE")
    op.execute("DROP TABLE IF EXISTS couples CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
