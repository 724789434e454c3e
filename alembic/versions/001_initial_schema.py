"""Initial schema: profiles, habits, completions, catalog and ledger.

Catalog rows (achievements, skills) are not inserted here; the API seeds
them on startup.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_profiles (
            id BIGSERIAL PRIMARY KEY,
            external_id VARCHAR(128) UNIQUE NOT NULL,
            email VARCHAR(320),
            first_name VARCHAR(64),
            last_name VARCHAR(64),
            profile_image_url TEXT,
            level INTEGER NOT NULL DEFAULT 1,
            experience INTEGER NOT NULL DEFAULT 0,
            experience_to_next INTEGER NOT NULL DEFAULT 100,
            currency INTEGER NOT NULL DEFAULT 0,
            character_class VARCHAR(64) NOT NULL DEFAULT 'Shadow Assassin',
            title VARCHAR(64) NOT NULL DEFAULT 'Shadow Hunter',
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_completed_on DATE,
            total_completions INTEGER NOT NULL DEFAULT 0,
            total_achievements INTEGER NOT NULL DEFAULT 0,
            strength_stat INTEGER NOT NULL DEFAULT 10,
            intelligence_stat INTEGER NOT NULL DEFAULT 10,
            discipline_stat INTEGER NOT NULL DEFAULT 10,
            social_stat INTEGER NOT NULL DEFAULT 10,
            stripe_customer_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Habits ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS habits (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            category VARCHAR(16) NOT NULL,
            icon VARCHAR(64) NOT NULL DEFAULT 'fas fa-check',
            exp_reward INTEGER NOT NULL DEFAULT 50,
            penalty NUMERIC(10,2) NOT NULL DEFAULT 15.00,
            penalty_destination VARCHAR(16),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            total_completions INTEGER NOT NULL DEFAULT 0,
            last_completed_on DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_habits_user_id ON habits(user_id)")

    op.execute("""
        CREATE TABLE IF NOT EXISTS habit_completions (
            id BIGSERIAL PRIMARY KEY,
            habit_id BIGINT NOT NULL REFERENCES habits(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            date DATE NOT NULL,
            completed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            exp_gained INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_habit_completion_day UNIQUE (habit_id, date)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_habit_completions_user_id
        ON habit_completions(user_id)
    """)

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            icon VARCHAR(64) NOT NULL DEFAULT 'fas fa-trophy',
            category VARCHAR(16) NOT NULL,
            requirement INTEGER NOT NULL,
            exp_reward INTEGER NOT NULL DEFAULT 100,
            currency_reward INTEGER NOT NULL DEFAULT 50,
            reward_amount NUMERIC(10,2) NOT NULL DEFAULT 0,
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            is_secret BOOLEAN NOT NULL DEFAULT FALSE,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            progress INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT uq_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS skills (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            icon VARCHAR(64) NOT NULL DEFAULT 'fas fa-star',
            category VARCHAR(16) NOT NULL,
            tier INTEGER NOT NULL DEFAULT 1,
            cost INTEGER NOT NULL DEFAULT 100,
            required_level INTEGER NOT NULL DEFAULT 1,
            effect JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_skills (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            skill_id INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            is_active BOOLEAN NOT NULL DEFAULT TRUE,
            CONSTRAINT uq_user_skill UNIQUE (user_id, skill_id)
        )
    """)

    # --- Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS penalties (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            habit_id BIGINT NOT NULL REFERENCES habits(id) ON DELETE CASCADE,
            amount NUMERIC(10,2) NOT NULL,
            destination VARCHAR(16) NOT NULL,
            reason TEXT,
            missed_on DATE NOT NULL,
            is_paid BOOLEAN NOT NULL DEFAULT FALSE,
            stripe_payment_intent_id VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            paid_at TIMESTAMPTZ,
            CONSTRAINT uq_penalty_habit_day UNIQUE (habit_id, missed_on)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_penalties_user_id ON penalties(user_id)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_penalties_unpaid
        ON penalties(user_id) WHERE is_paid = FALSE
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES user_profiles(id) ON DELETE CASCADE,
            amount NUMERIC(10,2) NOT NULL,
            reason TEXT,
            is_claimed BOOLEAN NOT NULL DEFAULT FALSE,
            stripe_transfer_id VARCHAR(128),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            claimed_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_rewards_user_id ON rewards(user_id)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS penalties CASCADE")
    op.execute("DROP TABLE IF EXISTS user_skills CASCADE")
    op.execute("DROP TABLE IF EXISTS skills CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS habit_completions CASCADE")
    op.execute("DROP TABLE IF EXISTS habits CASCADE")
    op.execute("DROP TABLE IF EXISTS user_profiles CASCADE")
