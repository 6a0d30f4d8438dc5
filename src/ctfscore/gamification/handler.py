"""Post-solve gamification side effects.

Runs after the submit-flag response on its own session. Nothing here may
fail a submission: ``run_solve_side_effects`` and
``run_wrong_submission_side_effects`` log and swallow every error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.database import Database
from ctfscore.db.models import Challenge, Solve, Submission, User
from ctfscore.gamification.badge_service import award_badge, earned_badge_keys
from ctfscore.gamification.levels import solve_xp
from ctfscore.gamification.quest_service import advance_quests
from ctfscore.gamification.rules import BadgeContext, eligible_badges
from ctfscore.gamification.xp_service import grant_xp, increment_user
from ctfscore.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolveEvent:
    """Emitted once per newly created solve."""

    uid: str
    event_id: str
    challenge_id: str
    solve_id: str
    category: str
    points: int
    attempt_number: int
    solved_at: datetime


def stats_dict(user: User) -> dict[str, Any]:
    return {
        "solvesTotal": user.solves_total,
        "correctSubmissions": user.correct_submissions,
        "wrongSubmissions": user.wrong_submissions,
        "solvesByCategory": dict(user.solves_by_category or {}),
    }


class GamificationHandler:
    """Applies XP, stats, badges and quest progress for one user."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _award_eligible(self, user: User, ctx: BadgeContext) -> list[str]:
        earned = await earned_badge_keys(self.db, user.uid)
        awarded: list[str] = []
        for key in eligible_badges(ctx, earned):
            if await award_badge(self.db, user, key):
                awarded.append(key)
        return awarded

    async def on_solve(self, event: SolveEvent) -> list[str]:
        """Apply every side effect of a new solve. Returns badge keys awarded.

        Replaying the same event is a no-op: the solve XP grant is keyed by
        the solve id and everything else is gated on it.
        """
        user = await self.db.get(User, event.uid)
        if user is None:
            logger.warning("Gamification skipped, no profile for uid=%s", event.uid)
            return []

        granted = await grant_xp(
            self.db,
            user,
            amount=solve_xp(event.points),
            source="solve",
            source_id=event.solve_id,
            description=f"Solved challenge {event.challenge_id}",
            idempotency_key=f"solve:{event.solve_id}",
        )
        if not granted:
            return []

        await increment_user(self.db, user, solves_total=1, correct_submissions=1)
        by_category = dict(user.solves_by_category or {})
        by_category[event.category] = by_category.get(event.category, 0) + 1
        user.solves_by_category = by_category
        await self.db.commit()

        ctx = BadgeContext(
            solves_total=user.solves_total,
            solves_by_category=by_category,
            in_team=user.team_id is not None,
            first_attempt=event.attempt_number == 1,
            local_hour=as_utc(event.solved_at).astimezone().hour,
        )
        awarded = await self._award_eligible(user, ctx)

        await advance_quests(self.db, user, event.category, utcnow())
        return awarded

    async def on_wrong_submission(self, uid: str) -> None:
        user = await self.db.get(User, uid)
        if user is None:
            return
        await increment_user(self.db, user, wrong_submissions=1)
        await self.db.commit()

    async def recompute_stats(self, uid: str) -> tuple[dict[str, Any], list[str]]:
        """Rebuild a user's stats from the submission log and solve ledger, then re-check badges."""
        user = await self.db.get(User, uid)
        if user is None:
            return {}, []
        await increment_user(self.db, user)

        counts = await self.db.execute(
            select(Submission.is_correct, func.count())
            .where(Submission.uid == uid)
            .group_by(Submission.is_correct)
        )
        by_correctness = {bool(is_correct): n for is_correct, n in counts.all()}

        solves = await self.db.execute(
            select(func.coalesce(Challenge.category, "UNKNOWN"))
            .select_from(Solve)
            .outerjoin(Challenge, Challenge.id == Solve.challenge_id)
            .where(Solve.uid == uid)
        )
        by_category: dict[str, int] = {}
        solves_total = 0
        for (category,) in solves.all():
            solves_total += 1
            by_category[category] = by_category.get(category, 0) + 1

        user.solves_total = solves_total
        user.correct_submissions = by_correctness.get(True, 0)
        user.wrong_submissions = by_correctness.get(False, 0)
        user.solves_by_category = by_category
        await self.db.commit()

        ctx = BadgeContext(
            solves_total=solves_total,
            solves_by_category=by_category,
            in_team=user.team_id is not None,
        )
        new_badges = await self._award_eligible(user, ctx)
        return stats_dict(user), new_badges


async def run_solve_side_effects(database: Database, event: SolveEvent) -> None:
    """Background task entry point for a new solve."""
    try:
        async with database.session() as db:
            awarded = await GamificationHandler(db).on_solve(event)
        if awarded:
            logger.info("Badges awarded uid=%s badges=%s", event.uid, ",".join(awarded))
    except Exception:
        logger.exception("gamification_failed uid=%s solve=%s", event.uid, event.solve_id)


async def run_wrong_submission_side_effects(database: Database, uid: str) -> None:
    """Background task entry point for a wrong answer."""
    try:
        async with database.session() as db:
            await GamificationHandler(db).on_wrong_submission(uid)
    except Exception:
        logger.exception("gamification_failed uid=%s wrong_submission", uid)
