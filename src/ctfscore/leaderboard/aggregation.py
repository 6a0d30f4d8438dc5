"""Pure leaderboard aggregation.

Ordering contract for every ranking: score descending, then the earliest
``lastSolveAt`` first (the faster competitor wins a tie).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ctfscore.timeutils import as_utc


@dataclass
class ScoreRow:
    """One ranked participant (user or team)."""

    key: str
    name: str
    score: int
    last_solve_at: datetime

    def add(self, points: int, solved_at: datetime) -> None:
        self.score += points
        solved_at = as_utc(solved_at)
        if solved_at > self.last_solve_at:
            self.last_solve_at = solved_at


@dataclass(frozen=True)
class SolveFact:
    """The subset of a solve the aggregator reads."""

    uid: str
    team_id: str | None
    points: int
    solved_at: datetime


def rank_rows(rows: Iterable[ScoreRow]) -> list[ScoreRow]:
    return sorted(rows, key=lambda r: (-r.score, as_utc(r.last_solve_at)))


def _accumulate(totals: dict[str, ScoreRow], key: str, name: str, points: int, at: datetime) -> None:
    row = totals.get(key)
    if row is None:
        totals[key] = ScoreRow(key=key, name=name, score=points, last_solve_at=as_utc(at))
    else:
        row.add(points, at)


def aggregate_event(
    solves: Iterable[SolveFact],
    user_names: Mapping[str, str],
    team_names: Mapping[str, str],
) -> tuple[list[ScoreRow], list[ScoreRow]]:
    """Group an event's solves by user and by team. Solves without a team only count individually."""
    users: dict[str, ScoreRow] = {}
    teams: dict[str, ScoreRow] = {}
    for solve in solves:
        _accumulate(users, solve.uid, user_names.get(solve.uid, "Unknown"), solve.points, solve.solved_at)
        if solve.team_id:
            _accumulate(
                teams, solve.team_id, team_names.get(solve.team_id, "Unknown"), solve.points, solve.solved_at
            )
    return rank_rows(users.values()), rank_rows(teams.values())


def merge_standings(per_event_rows: Iterable[Iterable[ScoreRow]]) -> list[ScoreRow]:
    """Sum rows across events, keeping the most recent ``lastSolveAt`` per participant."""
    totals: dict[str, ScoreRow] = {}
    for rows in per_event_rows:
        for row in rows:
            _accumulate(totals, row.key, row.name, row.score, row.last_solve_at)
    return rank_rows(totals.values())


def retention_buckets(participants_by_event: Mapping[str, set[str]]) -> dict[str, int]:
    """Count participants active in exactly 1, exactly 2, or 3+ distinct events."""
    event_counts: dict[str, int] = {}
    for uids in participants_by_event.values():
        for uid in uids:
            event_counts[uid] = event_counts.get(uid, 0) + 1

    buckets = {"one": 0, "two": 0, "threePlus": 0}
    for count in event_counts.values():
        if count == 1:
            buckets["one"] += 1
        elif count == 2:
            buckets["two"] += 1
        else:
            buckets["threePlus"] += 1
    return buckets


# ---------------------------------------------------------------------------
# Document (de)serialization
# ---------------------------------------------------------------------------


def rows_to_document(rows: Iterable[ScoreRow], kind: str) -> list[dict[str, Any]]:
    key_field, name_field = ("uid", "displayName") if kind == "individual" else ("teamId", "teamName")
    return [
        {
            key_field: row.key,
            name_field: row.name,
            "score": row.score,
            "lastSolveAt": as_utc(row.last_solve_at).isoformat(),
        }
        for row in rows
    ]


def rows_from_document(document: Iterable[Mapping[str, Any]], kind: str) -> list[ScoreRow]:
    key_field, name_field = ("uid", "displayName") if kind == "individual" else ("teamId", "teamName")
    return [
        ScoreRow(
            key=str(raw[key_field]),
            name=str(raw.get(name_field, "Unknown")),
            score=int(raw.get("score", 0)),
            last_solve_at=as_utc(datetime.fromisoformat(raw["lastSolveAt"])),
        )
        for raw in document
    ]
