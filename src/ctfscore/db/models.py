"""ORM models for the scoring service.

Portable across PostgreSQL (production, see alembic/versions) and SQLite
(dev and tests, via ``Database.create_all``).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from ctfscore.db.base import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONDoc = JSON().with_variant(JSONB(), "postgresql")


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Users & teams
# ---------------------------------------------------------------------------


class Team(Base):
    """Team. Members point at it through ``users.team_id``."""

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    join_code: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)
    captain_uid: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class User(Base):
    """User profile. ``uid`` is the subject issued by the identity provider."""

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="participant")
    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    team_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # --- Progression (mutated only by gamification side effects) ---
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    solves_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_submissions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    solves_by_category: Mapped[dict[str, int]] = mapped_column(JSONDoc, nullable=False, default=dict)


# ---------------------------------------------------------------------------
# Leagues, events, challenges
# ---------------------------------------------------------------------------


class League(Base):
    """A series of events whose leaderboards roll up into standings."""

    __tablename__ = "leagues"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Event(Base):
    """CTF event. Status is derived from the clock, never stored."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    league_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("leagues.id", ondelete="SET NULL"), nullable=True, index=True
    )
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="public")
    team_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="publicTeams")
    owner_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Challenge(Base):
    """Challenge within one event. Unpublished challenges reject submissions."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="MISC")
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    points_fixed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description_md: Mapped[str] = mapped_column(Text, nullable=False, default="")
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Declared for future scoring modes; the submission flow scores fixed points.
    flag_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="standard")
    decay_min_points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decay_percent: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ChallengeSecret(Base):
    """Server-side flag hash. Never serialized to clients."""

    __tablename__ = "challenge_secrets"

    challenge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("challenges.id", ondelete="CASCADE"), primary_key=True
    )
    flag_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    case_sensitive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Submission log & solve ledger
# ---------------------------------------------------------------------------


class Submission(Base):
    """Append-only attempt log, one row per governed attempt."""

    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_event_uid_challenge", "event_id", "uid", "challenge_id"),
        Index("ix_submissions_event_uid_time", "event_id", "uid", "submitted_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    team_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    ip_hash: Mapped[str | None] = mapped_column(String(16), nullable=True)
    user_agent_hash: Mapped[str | None] = mapped_column(String(16), nullable=True)


class Solve(Base):
    """First correct submission per (uid, challenge). The primary key is the guard."""

    __tablename__ = "solves"

    id: Mapped[str] = mapped_column(String(256), primary_key=True)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    uid: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    team_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    challenge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    solved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False)


# ---------------------------------------------------------------------------
# Derived documents
# ---------------------------------------------------------------------------


class LeaderboardDocument(Base):
    """Materialized ranking, recomputable from the solve ledger."""

    __tablename__ = "leaderboards"

    scope: Mapped[str] = mapped_column(String(16), primary_key=True)  # event | league
    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), primary_key=True)  # individual | teams
    rows: Mapped[list[dict[str, Any]]] = mapped_column(JSONDoc, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AnalyticsSummary(Base):
    """Per-event or per-league analytics document."""

    __tablename__ = "analytics_summaries"

    scope: Mapped[str] = mapped_column(String(16), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONDoc, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class Badge(Base):
    """Badge catalog entry, seeded on startup."""

    __tablename__ = "badges"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    rarity: Mapped[str] = mapped_column(String(16), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class UserBadge(Base):
    """Badges earned by users — UNIQUE(uid, badge_key) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("uid", "badge_key", name="uq_user_badges_uid_badge"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    badge_key: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class XPLedger(Base):
    """Immutable XP transaction log with idempotency key."""

    __tablename__ = "xp_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    uid: Mapped[str] = mapped_column(String(128), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Quest(Base):
    """Time-boxed quest with a single progress rule."""

    __tablename__ = "quests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    active_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    active_to: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badge_reward: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rule_type: Mapped[str] = mapped_column(String(32), nullable=False)
    rule_target: Mapped[int] = mapped_column(Integer, nullable=False)
    rule_category: Mapped[str | None] = mapped_column(String(32), nullable=True)


class QuestProgress(Base):
    """Per-user quest progress — UNIQUE(quest_id, uid)."""

    __tablename__ = "quest_progress"
    __table_args__ = (UniqueConstraint("quest_id", "uid", name="uq_quest_progress_quest_uid"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    quest_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("quests.id", ondelete="CASCADE"), nullable=False
    )
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


class AuditLog(Base):
    """Admin action trail."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    admin_uid: Mapped[str] = mapped_column(String(128), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_path: Mapped[str] = mapped_column(String(256), nullable=False)
    before: Mapped[dict[str, Any] | None] = mapped_column(JSONDoc, nullable=True)
    after: Mapped[dict[str, Any] | None] = mapped_column(JSONDoc, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
