"""Admin business logic. Every mutation writes an audit entry in the same commit."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.admin.audit import write_audit_log
from ctfscore.db.models import Challenge, ChallengeSecret, Event, League, Quest, Solve, Submission, User
from ctfscore.errors import NotFoundError, ValidationError
from ctfscore.gamification.badge_service import get_badge
from ctfscore.scoring.flags import hash_flag, normalize_flag
from ctfscore.timeutils import as_utc, isoformat, utcnow

logger = structlog.get_logger()

LOG_PAGE_DEFAULT = 50
LOG_PAGE_MAX = 100
DEFAULT_LEAGUE_DAYS = 90

EVENT_FIELDS = (
    "name", "starts_at", "ends_at", "timezone", "published",
    "league_id", "visibility", "team_mode", "owner_id",
)
LEAGUE_FIELDS = ("name", "starts_at", "ends_at", "published")
CHALLENGE_FIELDS = (
    "title", "category", "difficulty", "points_fixed", "description_md",
    "published", "flag_mode", "decay_min_points", "decay_percent",
)


def _snapshot(obj: object, fields: tuple[str, ...]) -> dict[str, Any]:
    """JSON-safe copy of ``fields`` for the audit log."""
    data: dict[str, Any] = {}
    for field in fields:
        value = getattr(obj, field)
        data[field] = isoformat(value) if isinstance(value, datetime) else value
    return data


# ---------------------------------------------------------------------------
# Events & leagues
# ---------------------------------------------------------------------------


async def _check_league(db: AsyncSession, league_id: str | None) -> None:
    if league_id and await db.get(League, league_id) is None:
        raise NotFoundError("League not found", reason="league_not_found")


async def create_event(db: AsyncSession, admin_uid: str, values: dict[str, Any]) -> Event:
    await _check_league(db, values.get("league_id"))
    event = Event(**values, created_at=utcnow())
    if not event.owner_id:
        event.owner_id = admin_uid
    db.add(event)
    await db.flush()
    await write_audit_log(db, admin_uid, "CREATE_EVENT", f"events/{event.id}", None, _snapshot(event, EVENT_FIELDS))
    await db.commit()
    return event


async def update_event(db: AsyncSession, admin_uid: str, event_id: str, updates: dict[str, Any]) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found", reason="event_not_found")
    if "league_id" in updates:
        await _check_league(db, updates["league_id"])

    starts_at = as_utc(updates.get("starts_at") or event.starts_at)
    ends_at = as_utc(updates.get("ends_at") or event.ends_at)
    if starts_at >= ends_at:
        raise ValidationError("startsAt must be before endsAt")

    before = _snapshot(event, EVENT_FIELDS)
    for field, value in updates.items():
        setattr(event, field, value)
    await write_audit_log(db, admin_uid, "UPDATE_EVENT", f"events/{event_id}", before, _snapshot(event, EVENT_FIELDS))
    await db.commit()
    return event


async def create_league(db: AsyncSession, admin_uid: str, values: dict[str, Any]) -> League:
    now = utcnow()
    starts_at = values.get("starts_at") or now
    ends_at = values.get("ends_at") or starts_at + timedelta(days=DEFAULT_LEAGUE_DAYS)
    if as_utc(starts_at) >= as_utc(ends_at):
        raise ValidationError("startsAt must be before endsAt")

    league = League(
        name=values["name"],
        starts_at=starts_at,
        ends_at=ends_at,
        published=values.get("published", False),
        created_at=now,
    )
    db.add(league)
    await db.flush()
    await write_audit_log(
        db, admin_uid, "CREATE_LEAGUE", f"leagues/{league.id}", None,
        _snapshot(league, LEAGUE_FIELDS),
    )
    await db.commit()
    return league


async def update_league(db: AsyncSession, admin_uid: str, league_id: str, updates: dict[str, Any]) -> League:
    league = await db.get(League, league_id)
    if league is None:
        raise NotFoundError("League not found", reason="league_not_found")
    updates = {field: value for field, value in updates.items() if value is not None}

    starts_at = as_utc(updates.get("starts_at") or league.starts_at)
    ends_at = as_utc(updates.get("ends_at") or league.ends_at)
    if starts_at >= ends_at:
        raise ValidationError("startsAt must be before endsAt")

    before = _snapshot(league, LEAGUE_FIELDS)
    for field, value in updates.items():
        setattr(league, field, value)
    await write_audit_log(
        db, admin_uid, "UPDATE_LEAGUE", f"leagues/{league_id}", before, _snapshot(league, LEAGUE_FIELDS),
    )
    await db.commit()
    return league


# ---------------------------------------------------------------------------
# Challenges & flags
# ---------------------------------------------------------------------------


async def create_challenge(db: AsyncSession, admin_uid: str, values: dict[str, Any]) -> Challenge:
    event_id = values["event_id"]
    if await db.get(Event, event_id) is None:
        raise NotFoundError("Event not found", reason="event_not_found")

    now = utcnow()
    challenge = Challenge(**values, created_at=now, updated_at=now)
    db.add(challenge)
    await db.flush()
    await write_audit_log(
        db, admin_uid, "CREATE_CHALLENGE", f"events/{event_id}/challenges/{challenge.id}",
        None, _snapshot(challenge, CHALLENGE_FIELDS),
    )
    await db.commit()
    return challenge


async def get_challenge(db: AsyncSession, challenge_id: str) -> Challenge:
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge not found", reason="challenge_not_found")
    return challenge


async def update_challenge(
    db: AsyncSession, admin_uid: str, challenge_id: str, updates: dict[str, Any],
) -> Challenge:
    challenge = await get_challenge(db, challenge_id)
    before = _snapshot(challenge, CHALLENGE_FIELDS)
    for field, value in updates.items():
        setattr(challenge, field, value)
    challenge.updated_at = utcnow()
    await write_audit_log(
        db, admin_uid, "UPDATE_CHALLENGE", f"events/{challenge.event_id}/challenges/{challenge_id}",
        before, _snapshot(challenge, CHALLENGE_FIELDS),
    )
    await db.commit()
    return challenge


async def set_flag(
    db: AsyncSession,
    actor_uid: str,
    challenge: Challenge,
    flag_text: str,
    case_sensitive: bool,
    pepper: str,
) -> ChallengeSecret:
    """Store the hash of ``flag_text``. The plaintext is neither stored nor audited."""
    flag_hash = hash_flag(normalize_flag(flag_text, case_sensitive), pepper)
    now = utcnow()

    secret = await db.get(ChallengeSecret, challenge.id)
    before = None
    if secret is None:
        secret = ChallengeSecret(challenge_id=challenge.id, flag_hash=flag_hash, case_sensitive=case_sensitive, created_at=now)
        db.add(secret)
    else:
        before = {"caseSensitive": secret.case_sensitive, "hashSet": True}
        secret.flag_hash = flag_hash
        secret.case_sensitive = case_sensitive
        secret.created_at = now

    await write_audit_log(
        db, actor_uid, "SET_FLAG", f"events/{challenge.event_id}/challengeSecrets/{challenge.id}",
        before, {"caseSensitive": case_sensitive, "hashSet": True},
    )
    await db.commit()
    logger.info("flag_configured", challenge_id=challenge.id, event_id=challenge.event_id, actor=actor_uid)
    return secret


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def set_user_disabled(db: AsyncSession, admin_uid: str, uid: str, disabled: bool) -> User:
    user = await db.get(User, uid)
    if user is None:
        raise NotFoundError("User not found", reason="user_not_found")
    before = {"disabled": user.disabled, "role": user.role}
    user.disabled = disabled
    await write_audit_log(
        db, admin_uid, "DISABLE_USER" if disabled else "ENABLE_USER", f"users/{uid}",
        before, {"disabled": disabled},
    )
    await db.commit()
    return user


# ---------------------------------------------------------------------------
# Logs (cursor pagination on timestamp, newest first)
# ---------------------------------------------------------------------------


def parse_cursor(cursor: str | None) -> datetime | None:
    if not cursor:
        return None
    try:
        return as_utc(datetime.fromisoformat(cursor))
    except ValueError as e:
        raise ValidationError("Invalid cursor") from e


def page_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return LOG_PAGE_DEFAULT
    return min(limit, LOG_PAGE_MAX)


async def _label_maps(
    db: AsyncSession, uids: set[str], challenge_ids: set[str],
) -> tuple[dict[str, str], dict[str, str]]:
    names: dict[str, str] = {}
    titles: dict[str, str] = {}
    if uids:
        result = await db.execute(select(User.uid, User.display_name).where(User.uid.in_(uids)))
        names = {uid: name for uid, name in result.all() if name}
    if challenge_ids:
        result = await db.execute(select(Challenge.id, Challenge.title).where(Challenge.id.in_(challenge_ids)))
        titles = dict(result.all())
    return names, titles


async def list_submissions(
    db: AsyncSession,
    event_id: str,
    *,
    challenge_id: str | None = None,
    uid: str | None = None,
    correct_only: bool = False,
    cursor: str | None = None,
    limit: int | None = None,
) -> tuple[list[dict[str, Any]], str | None]:
    size = page_limit(limit)
    query = select(Submission).where(Submission.event_id == event_id)
    if challenge_id:
        query = query.where(Submission.challenge_id == challenge_id)
    if uid:
        query = query.where(Submission.uid == uid)
    if correct_only:
        query = query.where(Submission.is_correct.is_(True))
    before = parse_cursor(cursor)
    if before is not None:
        query = query.where(Submission.submitted_at < before)
    query = query.order_by(Submission.submitted_at.desc(), Submission.id.desc()).limit(size)

    rows = list((await db.execute(query)).scalars())
    names, titles = await _label_maps(db, {r.uid for r in rows}, {r.challenge_id for r in rows})
    items = [
        {
            "id": r.id,
            "event_id": r.event_id,
            "challenge_id": r.challenge_id,
            "challenge_title": titles.get(r.challenge_id, r.challenge_id[:8]),
            "uid": r.uid,
            "display_name": names.get(r.uid, r.uid[:8]),
            "team_id": r.team_id,
            "submitted_at": as_utc(r.submitted_at),
            "is_correct": r.is_correct,
            "attempt_number": r.attempt_number,
        }
        for r in rows
    ]
    next_cursor = isoformat(rows[-1].submitted_at) if len(rows) == size else None
    return items, next_cursor


async def list_solves(
    db: AsyncSession,
    event_id: str,
    *,
    cursor: str | None = None,
    limit: int | None = None,
) -> tuple[list[dict[str, Any]], str | None]:
    size = page_limit(limit)
    query = select(Solve).where(Solve.event_id == event_id)
    before = parse_cursor(cursor)
    if before is not None:
        query = query.where(Solve.solved_at < before)
    query = query.order_by(Solve.solved_at.desc(), Solve.id).limit(size)

    rows = list((await db.execute(query)).scalars())
    names, titles = await _label_maps(db, {r.uid for r in rows}, {r.challenge_id for r in rows})
    items = [
        {
            "id": r.id,
            "event_id": r.event_id,
            "challenge_id": r.challenge_id,
            "challenge_title": titles.get(r.challenge_id, r.challenge_id[:8]),
            "uid": r.uid,
            "display_name": names.get(r.uid, r.uid[:8]),
            "team_id": r.team_id,
            "solved_at": as_utc(r.solved_at),
            "points_awarded": r.points_awarded,
        }
        for r in rows
    ]
    next_cursor = isoformat(rows[-1].solved_at) if len(rows) == size else None
    return items, next_cursor


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


DEFAULT_QUESTS: list[dict[str, Any]] = [
    {
        "title": "Weekly Warrior",
        "description": "Solve 3 challenges this week",
        "xp_reward": 150,
        "rule_type": "solve_total",
        "rule_target": 3,
    },
    {
        "title": "Web Hunter",
        "description": "Solve 2 WEB challenges this week",
        "xp_reward": 100,
        "rule_type": "solve_category",
        "rule_target": 2,
        "rule_category": "WEB",
    },
    {
        "title": "Crypto Starter",
        "description": "Solve 1 CRYPTO challenge this week",
        "xp_reward": 75,
        "rule_type": "solve_category",
        "rule_target": 1,
        "rule_category": "CRYPTO",
    },
]


async def create_quest(db: AsyncSession, admin_uid: str, values: dict[str, Any]) -> Quest:
    if values.get("badge_reward"):
        if await get_badge(db, values["badge_reward"]) is None:
            raise NotFoundError("Badge not found", reason="badge_not_found")

    quest = Quest(**values)
    db.add(quest)
    await db.flush()
    await write_audit_log(
        db, admin_uid, "CREATE_QUEST", f"quests/{quest.id}", None,
        {
            "title": quest.title,
            "ruleType": quest.rule_type,
            "ruleTarget": quest.rule_target,
            "ruleCategory": quest.rule_category,
            "xpReward": quest.xp_reward,
        },
    )
    await db.commit()
    return quest


async def seed_default_quests(db: AsyncSession, admin_uid: str) -> int:
    """Create the starter quests, active for the next seven days."""
    now = utcnow()
    for quest in DEFAULT_QUESTS:
        db.add(Quest(**quest, active_from=now, active_to=now + timedelta(days=7)))
    await write_audit_log(db, admin_uid, "SEED_QUESTS", "quests/*", None, {"count": len(DEFAULT_QUESTS)})
    await db.commit()
    return len(DEFAULT_QUESTS)
