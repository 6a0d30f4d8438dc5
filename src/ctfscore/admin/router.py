"""Admin router — /api/admin/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.admin import service
from ctfscore.admin.audit import write_audit_log
from ctfscore.admin.schemas import (
    ChallengeCreateRequest,
    ChallengeResponse,
    ChallengeUpdateRequest,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    LeagueCreateRequest,
    LeagueResponse,
    LeagueUpdateRequest,
    QuestCreatedResponse,
    QuestCreateRequest,
    SetFlagRequest,
    SolveLogEntry,
    SolveLogPage,
    SubmissionLogEntry,
    SubmissionLogPage,
    SuccessResponse,
)
from ctfscore.auth.dependencies import get_current_user, is_admin_or_owner, require_admin
from ctfscore.config import Settings
from ctfscore.database import get_session
from ctfscore.db.models import Event, Quest, User
from ctfscore.dependencies import get_app_settings
from ctfscore.errors import ForbiddenError, NotFoundError
from ctfscore.events.status import get_event_status
from ctfscore.gamification.schemas import QuestRules
from ctfscore.gamification.seed import seed_badges
from ctfscore.leaderboard.schemas import RecomputeResponse
from ctfscore.leaderboard.service import recompute_event_leaderboards

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def _event_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        starts_at=event.starts_at,
        ends_at=event.ends_at,
        timezone=event.timezone,
        published=event.published,
        league_id=event.league_id,
        visibility=event.visibility,
        team_mode=event.team_mode,
        owner_id=event.owner_id,
        status=get_event_status(event).value,
    )


def _quest_response(quest: Quest) -> QuestCreatedResponse:
    return QuestCreatedResponse(
        id=quest.id,
        title=quest.title,
        active_from=quest.active_from,
        active_to=quest.active_to,
        xp_reward=quest.xp_reward,
        badge_reward=quest.badge_reward,
        rules=QuestRules(type=quest.rule_type, target=quest.rule_target, category=quest.rule_category),
    )


# ── Events & leagues ──


@router.post("/event", response_model=EventResponse)
async def create_event(
    body: EventCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> EventResponse:
    event = await service.create_event(db, admin.uid, body.model_dump())
    return _event_response(event)


@router.put("/event/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    body: EventUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> EventResponse:
    event = await service.update_event(db, admin.uid, event_id, body.model_dump(exclude_unset=True))
    return _event_response(event)


@router.post("/league", response_model=LeagueResponse)
async def create_league(
    body: LeagueCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> LeagueResponse:
    league = await service.create_league(db, admin.uid, body.model_dump())
    return LeagueResponse.model_validate(league)


@router.put("/league/{league_id}", response_model=LeagueResponse)
async def update_league(
    league_id: str,
    body: LeagueUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> LeagueResponse:
    league = await service.update_league(db, admin.uid, league_id, body.model_dump(exclude_unset=True))
    return LeagueResponse.model_validate(league)


@router.post("/event/{event_id}/recompute-leaderboard", response_model=RecomputeResponse)
async def recompute_leaderboard(
    event_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> RecomputeResponse:
    """Rebuild an event's leaderboards (and its league's standings) from the solve ledger."""
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found", reason="event_not_found")
    league_id = event.league_id
    individual, teams = await recompute_event_leaderboards(db, event_id, league_id)
    await write_audit_log(db, admin.uid, "RECOMPUTE_LEADERBOARD", f"events/{event_id}/leaderboards")
    await db.commit()
    return RecomputeResponse(event_id=event_id, individual_rows=len(individual), team_rows=len(teams))


# ── Challenges ──


@router.post("/challenge", response_model=ChallengeResponse)
async def create_challenge(
    body: ChallengeCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ChallengeResponse:
    challenge = await service.create_challenge(db, admin.uid, body.model_dump())
    return ChallengeResponse.model_validate(challenge)


@router.put("/challenge/{challenge_id}", response_model=ChallengeResponse)
async def update_challenge(
    challenge_id: str,
    body: ChallengeUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> ChallengeResponse:
    challenge = await service.update_challenge(db, admin.uid, challenge_id, body.model_dump(exclude_unset=True))
    return ChallengeResponse.model_validate(challenge)


@router.post("/challenge/{challenge_id}/set-flag", response_model=SuccessResponse)
async def set_challenge_flag(
    challenge_id: str,
    body: SetFlagRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> SuccessResponse:
    """Configure a challenge flag. Allowed for admins and the event owner."""
    challenge = await service.get_challenge(db, challenge_id)
    event = await db.get(Event, challenge.event_id)
    if event is None or not is_admin_or_owner(user, event):
        raise ForbiddenError("Admin or event owner access required")
    await service.set_flag(db, user.uid, challenge, body.flag_text, body.case_sensitive, settings.flag_pepper)
    return SuccessResponse()


# ── Logs ──


@router.get("/logs/submissions", response_model=SubmissionLogPage)
async def submission_logs(
    event_id: str = Query(alias="eventId", min_length=1),
    challenge_id: str | None = Query(default=None, alias="challengeId"),
    uid: str | None = Query(default=None),
    correct_only: bool = Query(default=False, alias="correctOnly"),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=service.LOG_PAGE_DEFAULT, ge=1),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SubmissionLogPage:
    items, next_cursor = await service.list_submissions(
        db,
        event_id,
        challenge_id=challenge_id,
        uid=uid,
        correct_only=correct_only,
        cursor=cursor,
        limit=limit,
    )
    return SubmissionLogPage(
        submissions=[SubmissionLogEntry(**item) for item in items],
        next_cursor=next_cursor,
    )


@router.get("/logs/solves", response_model=SolveLogPage)
async def solve_logs(
    event_id: str = Query(alias="eventId", min_length=1),
    cursor: str | None = Query(default=None),
    limit: int = Query(default=service.LOG_PAGE_DEFAULT, ge=1),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SolveLogPage:
    items, next_cursor = await service.list_solves(db, event_id, cursor=cursor, limit=limit)
    return SolveLogPage(solves=[SolveLogEntry(**item) for item in items], next_cursor=next_cursor)


# ── Users ──


@router.post("/user/{uid}/disable", response_model=SuccessResponse)
async def disable_user(
    uid: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    await service.set_user_disabled(db, admin.uid, uid, True)
    return SuccessResponse()


@router.post("/user/{uid}/enable", response_model=SuccessResponse)
async def enable_user(
    uid: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    await service.set_user_disabled(db, admin.uid, uid, False)
    return SuccessResponse()


# ── Gamification ──


@router.post("/badges/seed-default", response_model=SuccessResponse)
async def seed_default_badges(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    admin_uid = admin.uid
    count = await seed_badges(db)
    await write_audit_log(db, admin_uid, "SEED_BADGES", "badges/*", None, {"count": count})
    await db.commit()
    return SuccessResponse(count=count)


@router.post("/quests", response_model=QuestCreatedResponse)
async def create_quest(
    body: QuestCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> QuestCreatedResponse:
    values = body.model_dump(exclude={"rules"})
    values.update(rule_type=body.rules.type, rule_target=body.rules.target, rule_category=body.rules.category)
    quest = await service.create_quest(db, admin.uid, values)
    return _quest_response(quest)


@router.post("/quests/seed-default", response_model=SuccessResponse)
async def seed_default_quests(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> SuccessResponse:
    count = await service.seed_default_quests(db, admin.uid)
    return SuccessResponse(count=count)
