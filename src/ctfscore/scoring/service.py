"""Submit-flag orchestration.

Order of checks: event exists and is LIVE, challenge exists and is
published, governor, secret configured. Every attempt that passes the
governor is recorded before its result is returned. Derived documents
(analytics, leaderboards) are refreshed on a best-effort basis after the
solve is durable; the admin recompute endpoint repairs them if that fails.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.config import Settings
from ctfscore.db.models import Challenge, ChallengeSecret, Event, User
from ctfscore.errors import ForbiddenError, NotFoundError
from ctfscore.events.status import EventStatus, get_event_status
from ctfscore.gamification.handler import SolveEvent
from ctfscore.leaderboard.analytics import record_event_submission
from ctfscore.leaderboard.service import recompute_event_leaderboards
from ctfscore.scoring.flags import flag_matches, hash_flag, hash_meta, normalize_flag
from ctfscore.scoring.governor import SubmissionPolicy, check_submission_allowed, load_attempt_history
from ctfscore.scoring.ledger import get_solve, record_solve_if_first, solve_id_for
from ctfscore.scoring.recorder import record_submission
from ctfscore.timeutils import utcnow

logger = structlog.get_logger()


@dataclass
class SubmitOutcome:
    correct: bool
    already_solved: bool
    attempts_left: int
    cooldown_remaining: int
    score_awarded: int | None = None
    solve_event: SolveEvent | None = None


class SubmissionService:
    """Scores one flag submission for an already authenticated user."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.pepper = settings.flag_pepper
        self.policy = SubmissionPolicy.from_settings(settings)
        self.clock = clock

    async def _load_live_event(self, event_id: str, now: datetime) -> Event:
        event = await self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event not found", reason="event_not_found")
        status = get_event_status(event, now)
        if status is not EventStatus.LIVE:
            raise ForbiddenError(
                f"Event is {status.value}, not accepting submissions",
                reason="event_not_live",
                status=status.value,
            )
        return event

    async def _load_challenge(self, event_id: str, challenge_id: str) -> Challenge:
        challenge = await self.db.get(Challenge, challenge_id)
        if challenge is None or challenge.event_id != event_id or not challenge.published:
            raise NotFoundError("Challenge not found", reason="challenge_not_found")
        return challenge

    async def submit(
        self,
        user: User,
        event_id: str,
        challenge_id: str,
        flag_text: str,
        *,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> SubmitOutcome:
        now = self.clock()
        uid, team_id = user.uid, user.team_id

        event = await self._load_live_event(event_id, now)
        league_id = event.league_id
        challenge = await self._load_challenge(event_id, challenge_id)
        points, category = challenge.points_fixed or 0, challenge.category

        history = await load_attempt_history(self.db, event_id, challenge_id, uid, now, self.policy)
        check_submission_allowed(history, now, self.policy)

        secret = await self.db.get(ChallengeSecret, challenge_id)
        if secret is None:
            raise NotFoundError("Challenge flag not configured", reason="flag_not_configured")

        normalized = normalize_flag(flag_text, secret.case_sensitive)
        is_correct = flag_matches(hash_flag(normalized, self.pepper), secret.flag_hash)

        submission = await record_submission(
            self.db,
            event_id=event_id,
            challenge_id=challenge_id,
            uid=uid,
            team_id=team_id,
            is_correct=is_correct,
            prior_attempts=history.attempt_count,
            submitted_at=now,
            ip_hash=hash_meta(client_ip) if client_ip else None,
            user_agent_hash=hash_meta(user_agent) if user_agent else None,
        )
        attempt_number = submission.attempt_number

        created = False
        if is_correct:
            result = await record_solve_if_first(
                self.db,
                uid=uid,
                challenge_id=challenge_id,
                event_id=event_id,
                team_id=team_id,
                points=points,
                solved_at=now,
            )
            created = result.created
            already_solved = not created
        else:
            already_solved = await get_solve(self.db, uid, challenge_id) is not None

        logger.info(
            "flag_submitted",
            uid=uid,
            event_id=event_id,
            challenge_id=challenge_id,
            correct=is_correct,
            solve_created=created,
            attempt_number=attempt_number,
        )

        await self._refresh_analytics(event_id, challenge_id, is_correct, created, now)

        outcome = SubmitOutcome(
            correct=is_correct,
            already_solved=already_solved,
            attempts_left=max(0, self.policy.max_attempts - attempt_number),
            cooldown_remaining=0 if is_correct else self.policy.cooldown_seconds,
        )
        if created:
            await self._refresh_leaderboards(event_id, league_id)
            outcome.score_awarded = points
            outcome.solve_event = SolveEvent(
                uid=uid,
                event_id=event_id,
                challenge_id=challenge_id,
                solve_id=solve_id_for(uid, challenge_id),
                category=category,
                points=points,
                attempt_number=attempt_number,
                solved_at=now,
            )
        return outcome

    async def _refresh_analytics(
        self, event_id: str, challenge_id: str, is_correct: bool, new_solve: bool, now: datetime,
    ) -> None:
        try:
            await record_event_submission(self.db, event_id, challenge_id, is_correct, now, new_solve=new_solve)
        except Exception:
            await self.db.rollback()
            logger.exception("analytics_update_failed", event_id=event_id, challenge_id=challenge_id)

    async def _refresh_leaderboards(self, event_id: str, league_id: str | None) -> None:
        try:
            await recompute_event_leaderboards(self.db, event_id, league_id)
        except Exception:
            await self.db.rollback()
            logger.exception("leaderboard_recompute_failed", event_id=event_id, league_id=league_id)
