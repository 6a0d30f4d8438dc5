"""Baseline scoring schema.

Creates users/teams, leagues/events/challenges, the challenge secret store,
the submission log, the solve ledger, derived leaderboard and analytics
documents, gamification tables and the admin audit log.

Revision ID: 001_baseline
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Teams & users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS teams (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            created_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            uid VARCHAR(128) PRIMARY KEY,
            display_name VARCHAR(64) NOT NULL DEFAULT '',
            role VARCHAR(16) NOT NULL DEFAULT 'participant',
            disabled BOOLEAN NOT NULL DEFAULT false,
            team_id VARCHAR(64) REFERENCES teams(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ,
            xp INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            solves_total INTEGER NOT NULL DEFAULT 0,
            correct_submissions INTEGER NOT NULL DEFAULT 0,
            wrong_submissions INTEGER NOT NULL DEFAULT 0,
            solves_by_category JSONB NOT NULL DEFAULT '{}'
        )
    """)

    # --- Leagues, events, challenges ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leagues (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            starts_at TIMESTAMPTZ NOT NULL,
            ends_at TIMESTAMPTZ NOT NULL,
            published BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            starts_at TIMESTAMPTZ NOT NULL,
            ends_at TIMESTAMPTZ NOT NULL,
            timezone VARCHAR(64) NOT NULL DEFAULT 'UTC',
            published BOOLEAN NOT NULL DEFAULT false,
            league_id VARCHAR(64) REFERENCES leagues(id) ON DELETE SET NULL,
            visibility VARCHAR(16) NOT NULL DEFAULT 'public',
            team_mode VARCHAR(16) NOT NULL DEFAULT 'publicTeams',
            owner_id VARCHAR(128),
            created_at TIMESTAMPTZ,
            CHECK (starts_at < ends_at)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_events_league_id ON events(league_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenges (
            id VARCHAR(64) PRIMARY KEY,
            event_id VARCHAR(64) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            title VARCHAR(128) NOT NULL,
            category VARCHAR(32) NOT NULL DEFAULT 'MISC',
            difficulty INTEGER NOT NULL DEFAULT 1,
            points_fixed INTEGER NOT NULL DEFAULT 0,
            description_md TEXT NOT NULL DEFAULT '',
            published BOOLEAN NOT NULL DEFAULT false,
            flag_mode VARCHAR(16) NOT NULL DEFAULT 'standard',
            decay_min_points INTEGER,
            decay_percent INTEGER,
            created_at TIMESTAMPTZ,
            updated_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_challenges_event_id ON challenges(event_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS challenge_secrets (
            challenge_id VARCHAR(64) PRIMARY KEY REFERENCES challenges(id) ON DELETE CASCADE,
            flag_hash VARCHAR(64) NOT NULL,
            case_sensitive BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Submission log & solve ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS submissions (
            id BIGSERIAL PRIMARY KEY,
            event_id VARCHAR(64) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            challenge_id VARCHAR(64) NOT NULL,
            uid VARCHAR(128) NOT NULL,
            team_id VARCHAR(64),
            submitted_at TIMESTAMPTZ NOT NULL,
            is_correct BOOLEAN NOT NULL,
            attempt_number INTEGER NOT NULL,
            ip_hash VARCHAR(16),
            user_agent_hash VARCHAR(16)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_submissions_event_uid_challenge
        ON submissions(event_id, uid, challenge_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_submissions_event_uid_time
        ON submissions(event_id, uid, submitted_at)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS solves (
            id VARCHAR(256) PRIMARY KEY,
            event_id VARCHAR(64) NOT NULL REFERENCES events(id) ON DELETE CASCADE,
            uid VARCHAR(128) NOT NULL,
            team_id VARCHAR(64),
            challenge_id VARCHAR(64) NOT NULL,
            solved_at TIMESTAMPTZ NOT NULL,
            points_awarded INTEGER NOT NULL
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_solves_event_id ON solves(event_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_solves_uid ON solves(uid)")

    # --- Derived documents ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leaderboards (
            scope VARCHAR(16) NOT NULL,
            owner_id VARCHAR(64) NOT NULL,
            kind VARCHAR(16) NOT NULL,
            rows JSONB NOT NULL DEFAULT '[]',
            updated_at TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (scope, owner_id, kind)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS analytics_summaries (
            scope VARCHAR(16) NOT NULL,
            owner_id VARCHAR(64) NOT NULL,
            data JSONB NOT NULL DEFAULT '{}',
            updated_at TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (scope, owner_id)
        )
    """)

    # --- Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            key VARCHAR(64) PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16) NOT NULL DEFAULT '',
            rarity VARCHAR(16) NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id BIGSERIAL PRIMARY KEY,
            uid VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            badge_key VARCHAR(64) NOT NULL,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_badges_uid_badge UNIQUE (uid, badge_key)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_ledger (
            id BIGSERIAL PRIMARY KEY,
            uid VARCHAR(128) NOT NULL REFERENCES users(uid) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            source VARCHAR(32) NOT NULL,
            source_id VARCHAR(256),
            description VARCHAR(256),
            idempotency_key VARCHAR(320) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quests (
            id VARCHAR(64) PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            active_from TIMESTAMPTZ NOT NULL,
            active_to TIMESTAMPTZ NOT NULL,
            xp_reward INTEGER NOT NULL DEFAULT 0,
            badge_reward VARCHAR(64),
            rule_type VARCHAR(32) NOT NULL,
            rule_target INTEGER NOT NULL,
            rule_category VARCHAR(32)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quest_progress (
            id BIGSERIAL PRIMARY KEY,
            quest_id VARCHAR(64) NOT NULL REFERENCES quests(id) ON DELETE CASCADE,
            uid VARCHAR(128) NOT NULL,
            progress INTEGER NOT NULL DEFAULT 0,
            completed BOOLEAN NOT NULL DEFAULT false,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_quest_progress_quest_uid UNIQUE (quest_id, uid)
        )
    """)

    # --- Audit ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS audit_logs (
            id BIGSERIAL PRIMARY KEY,
            admin_uid VARCHAR(128) NOT NULL,
            action VARCHAR(64) NOT NULL,
            entity_path VARCHAR(256) NOT NULL,
            before JSONB,
            after JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_audit_logs_created ON audit_logs(created_at DESC)")


def downgrade() -> None:
    for table in (
        "audit_logs",
        "quest_progress",
        "quests",
        "xp_ledger",
        "user_badges",
        "badges",
        "analytics_summaries",
        "leaderboards",
        "solves",
        "submissions",
        "challenge_secrets",
        "challenges",
        "events",
        "leagues",
        "users",
        "teams",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
