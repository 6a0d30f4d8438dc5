"""Leaderboard, standings and analytics read endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.dependencies import get_current_user, is_admin_or_owner
from ctfscore.database import get_session
from ctfscore.db.models import Event, League, User
from ctfscore.errors import ForbiddenError, NotFoundError, ValidationError
from ctfscore.leaderboard.analytics import get_summary
from ctfscore.leaderboard.schemas import AnalyticsResponse, LeaderboardResponse
from ctfscore.leaderboard.service import KINDS, get_document

router = APIRouter(prefix="/api", tags=["Leaderboard"])


def _check_kind(kind: str) -> None:
    if kind not in KINDS:
        raise ValidationError(f"Unknown leaderboard kind: {kind}", allowed=list(KINDS))


async def _leaderboard(db: AsyncSession, scope: str, owner_id: str, kind: str) -> LeaderboardResponse:
    doc = await get_document(db, scope, owner_id, kind)
    return LeaderboardResponse(
        scope=scope,
        owner_id=owner_id,
        kind=kind,
        rows=doc.rows if doc else [],
        updated_at=doc.updated_at if doc else None,
    )


@router.get("/events/{event_id}/leaderboard/{kind}", response_model=LeaderboardResponse)
async def get_event_leaderboard(
    event_id: str,
    kind: str,
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Get an event's individual or team ranking."""
    _check_kind(kind)
    if await db.get(Event, event_id) is None:
        raise NotFoundError("Event not found", reason="event_not_found")
    return await _leaderboard(db, "event", event_id, kind)


@router.get("/leagues/{league_id}/standings/{kind}", response_model=LeaderboardResponse)
async def get_league_standings(
    league_id: str,
    kind: str,
    db: AsyncSession = Depends(get_session),
) -> LeaderboardResponse:
    """Get a league's standings summed across its events."""
    _check_kind(kind)
    if await db.get(League, league_id) is None:
        raise NotFoundError("League not found", reason="league_not_found")
    return await _leaderboard(db, "league", league_id, kind)


@router.get("/leagues/{league_id}/analytics", response_model=AnalyticsResponse)
async def get_league_analytics(
    league_id: str,
    db: AsyncSession = Depends(get_session),
) -> AnalyticsResponse:
    """Get league participation and retention buckets."""
    if await db.get(League, league_id) is None:
        raise NotFoundError("League not found", reason="league_not_found")
    summary = await get_summary(db, "league", league_id)
    return AnalyticsResponse(
        scope="league",
        owner_id=league_id,
        data=summary.data if summary else {},
        updated_at=summary.updated_at if summary else None,
    )


@router.get("/events/{event_id}/analytics", response_model=AnalyticsResponse)
async def get_event_analytics(
    event_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AnalyticsResponse:
    """Get submission analytics for an event (admin or event owner)."""
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found", reason="event_not_found")
    if not is_admin_or_owner(user, event):
        raise ForbiddenError("Admin or event owner access required")
    summary = await get_summary(db, "event", event_id)
    return AnalyticsResponse(
        scope="event",
        owner_id=event_id,
        data=summary.data if summary else {},
        updated_at=summary.updated_at if summary else None,
    )
