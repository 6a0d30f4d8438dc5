"""Solve ledger — at most one solve per (uid, challenge).

The solve id ``{uid}_{challengeId}`` is the primary key, so the storage
layer is the single writer: concurrent inserts race on the key and every
loser sees an ``IntegrityError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Solve

logger = structlog.get_logger()


def solve_id_for(uid: str, challenge_id: str) -> str:
    return f"{uid}_{challenge_id}"


@dataclass(frozen=True)
class SolveResult:
    created: bool
    solve: Solve | None


async def get_solve(db: AsyncSession, uid: str, challenge_id: str) -> Solve | None:
    result = await db.execute(select(Solve).where(Solve.id == solve_id_for(uid, challenge_id)))
    return result.scalar_one_or_none()


async def record_solve_if_first(
    db: AsyncSession,
    *,
    uid: str,
    challenge_id: str,
    event_id: str,
    team_id: str | None,
    points: int,
    solved_at: datetime,
) -> SolveResult:
    """Create the solve unless one exists. Returns ``created=False`` to the losing writer."""
    solve_id = solve_id_for(uid, challenge_id)

    existing = await get_solve(db, uid, challenge_id)
    if existing is not None:
        return SolveResult(created=False, solve=existing)

    solve = Solve(
        id=solve_id,
        event_id=event_id,
        uid=uid,
        team_id=team_id,
        challenge_id=challenge_id,
        solved_at=solved_at,
        points_awarded=points,
    )
    db.add(solve)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("solve_race_lost", solve_id=solve_id, event_id=event_id)
        return SolveResult(created=False, solve=None)

    logger.info("solve_recorded", solve_id=solve_id, event_id=event_id, points=points)
    return SolveResult(created=True, solve=solve)
