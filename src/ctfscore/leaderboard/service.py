"""Leaderboard recompute and read service.

Leaderboards are derived documents: after every new solve the event's
``individual`` and ``teams`` rankings are rebuilt from the full solve
ledger, then rolled up into league standings when the event belongs to a
league. The scan reads a possibly stale snapshot, which is acceptable since
the next solve recomputes again.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import AnalyticsSummary, Event, League, LeaderboardDocument, Solve, Team, User
from ctfscore.db.upsert import upsert
from ctfscore.leaderboard.aggregation import (
    ScoreRow,
    SolveFact,
    aggregate_event,
    merge_standings,
    retention_buckets,
    rows_from_document,
    rows_to_document,
)
from ctfscore.timeutils import utcnow

logger = logging.getLogger(__name__)

KINDS = ("individual", "teams")


async def _names(db: AsyncSession, uids: set[str], team_ids: set[str]) -> tuple[dict[str, str], dict[str, str]]:
    user_names: dict[str, str] = {}
    team_names: dict[str, str] = {}
    if uids:
        result = await db.execute(select(User.uid, User.display_name).where(User.uid.in_(uids)))
        user_names = {uid: name or "Unknown" for uid, name in result.all()}
    if team_ids:
        result = await db.execute(select(Team.id, Team.name).where(Team.id.in_(team_ids)))
        team_names = {tid: name for tid, name in result.all()}
    return user_names, team_names


async def _save_document(db: AsyncSession, scope: str, owner_id: str, kind: str, rows: list[ScoreRow]) -> None:
    await upsert(
        db,
        LeaderboardDocument,
        {
            "scope": scope,
            "owner_id": owner_id,
            "kind": kind,
            "rows": rows_to_document(rows, kind),
            "updated_at": utcnow(),
        },
        index_elements=["scope", "owner_id", "kind"],
        update_fields=["rows", "updated_at"],
    )


async def get_document(db: AsyncSession, scope: str, owner_id: str, kind: str) -> LeaderboardDocument | None:
    result = await db.execute(
        select(LeaderboardDocument).where(
            LeaderboardDocument.scope == scope,
            LeaderboardDocument.owner_id == owner_id,
            LeaderboardDocument.kind == kind,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def recompute_event_leaderboards(
    db: AsyncSession, event_id: str, league_id: str | None = None,
) -> tuple[list[ScoreRow], list[ScoreRow]]:
    """Rebuild both event rankings from the solve ledger and commit.

    When ``league_id`` is given the league standings are rebuilt afterwards.
    """
    result = await db.execute(select(Solve).where(Solve.event_id == event_id))
    facts = [
        SolveFact(uid=s.uid, team_id=s.team_id, points=s.points_awarded, solved_at=s.solved_at)
        for s in result.scalars()
    ]

    user_names, team_names = await _names(
        db,
        {f.uid for f in facts},
        {f.team_id for f in facts if f.team_id},
    )
    individual, teams = aggregate_event(facts, user_names, team_names)

    await _save_document(db, "event", event_id, "individual", individual)
    await _save_document(db, "event", event_id, "teams", teams)
    await db.commit()

    logger.info(
        "Recomputed event leaderboard %s (%d users, %d teams, %d solves)",
        event_id, len(individual), len(teams), len(facts),
    )

    if league_id:
        await recompute_league_standings(db, league_id)

    return individual, teams


async def recompute_league_standings(db: AsyncSession, league_id: str) -> dict[str, Any] | None:
    """Sum event leaderboards across the league and refresh its analytics summary.

    Returns the analytics summary, or None if the league does not exist.
    """
    league = await db.get(League, league_id)
    if league is None:
        logger.warning("League not found for standings recompute: %s", league_id)
        return None

    event_ids = list(
        (await db.execute(select(Event.id).where(Event.league_id == league_id))).scalars()
    )

    for kind in KINDS:
        per_event: list[list[ScoreRow]] = []
        for event_id in event_ids:
            doc = await get_document(db, "event", event_id, kind)
            if doc is not None:
                per_event.append(rows_from_document(doc.rows, kind))
        await _save_document(db, "league", league_id, kind, merge_standings(per_event))

    participants_by_event: dict[str, set[str]] = {eid: set() for eid in event_ids}
    if event_ids:
        rows = await db.execute(
            select(Solve.event_id, Solve.uid).where(Solve.event_id.in_(event_ids)).distinct()
        )
        for event_id, uid in rows.all():
            participants_by_event[event_id].add(uid)

    all_participants: set[str] = set().union(*participants_by_event.values()) if participants_by_event else set()
    summary = {
        "participantsTotal": len(all_participants),
        "participationByEvent": {eid: len(uids) for eid, uids in participants_by_event.items()},
        "retentionBuckets": retention_buckets(participants_by_event),
    }
    now = utcnow()
    await upsert(
        db,
        AnalyticsSummary,
        {"scope": "league", "owner_id": league_id, "data": summary, "updated_at": now},
        index_elements=["scope", "owner_id"],
        update_fields=["data", "updated_at"],
    )
    await db.commit()
    return summary
