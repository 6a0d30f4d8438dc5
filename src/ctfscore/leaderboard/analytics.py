"""Per-event submission analytics document."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import AnalyticsSummary
from ctfscore.db.upsert import insert_ignore
from ctfscore.timeutils import as_utc

MINUTE_BUCKETS_KEPT = 60


def empty_event_summary() -> dict[str, Any]:
    return {
        "submissionsTotal": 0,
        "solvesTotal": 0,
        "solvesByChallenge": {},
        "wrongByChallenge": {},
        "submissionsByMinute": [],
    }


def apply_submission(
    summary: dict[str, Any], challenge_id: str, is_correct: bool, at: datetime, *, new_solve: bool = True,
) -> dict[str, Any]:
    """Return a copy of ``summary`` with one more submission counted.

    A correct answer on an already solved challenge counts as a submission only.
    """
    data = {**empty_event_summary(), **summary}
    data["submissionsTotal"] += 1

    solves = dict(data["solvesByChallenge"])
    wrong = dict(data["wrongByChallenge"])
    if is_correct and new_solve:
        data["solvesTotal"] += 1
        solves[challenge_id] = solves.get(challenge_id, 0) + 1
    elif not is_correct:
        wrong[challenge_id] = wrong.get(challenge_id, 0) + 1
    data["solvesByChallenge"] = solves
    data["wrongByChallenge"] = wrong

    minute_key = as_utc(at).strftime("%Y-%m-%dT%H:%M")
    buckets = [dict(b) for b in data["submissionsByMinute"]]
    for bucket in buckets:
        if bucket["minuteKey"] == minute_key:
            bucket["count"] += 1
            break
    else:
        buckets.append({"minuteKey": minute_key, "count": 1})
    data["submissionsByMinute"] = buckets[-MINUTE_BUCKETS_KEPT:]
    return data


async def get_summary(db: AsyncSession, scope: str, owner_id: str) -> AnalyticsSummary | None:
    result = await db.execute(
        select(AnalyticsSummary)
        .where(AnalyticsSummary.scope == scope, AnalyticsSummary.owner_id == owner_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def record_event_submission(
    db: AsyncSession, event_id: str, challenge_id: str, is_correct: bool, at: datetime, *, new_solve: bool = True,
) -> dict[str, Any]:
    """Fold one submission into the event summary and commit."""
    await insert_ignore(
        db,
        AnalyticsSummary,
        {"scope": "event", "owner_id": event_id, "data": empty_event_summary(), "updated_at": at},
        index_elements=["scope", "owner_id"],
    )
    summary = await get_summary(db, "event", event_id)
    summary.data = apply_submission(summary.data or {}, challenge_id, is_correct, at, new_solve=new_solve)
    summary.updated_at = at
    await db.commit()
    return summary.data
