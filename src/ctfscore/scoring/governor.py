"""Rate/attempt governor — decides whether a submission may be scored.

The decision is a pure function of an ``AttemptHistory`` snapshot; loading
the snapshot only reads the submission log. Reads are not transactionally
tied to the recorder's write, so two concurrent attempts can both pass and
``attempt_number`` may be off by one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.config import Settings
from ctfscore.db.models import Submission
from ctfscore.errors import AttemptsExhaustedError, RateLimitError
from ctfscore.timeutils import as_utc


@dataclass(frozen=True)
class SubmissionPolicy:
    max_attempts: int = 30
    cooldown_seconds: int = 10
    window_seconds: int = 60
    window_max: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> SubmissionPolicy:
        return cls(
            max_attempts=settings.submission_max_attempts,
            cooldown_seconds=settings.submission_cooldown_seconds,
            window_seconds=settings.submission_rate_limit_window_seconds,
            window_max=settings.submission_rate_limit_max,
        )


@dataclass(frozen=True)
class AttemptHistory:
    """What the governor needs to know about a user's prior submissions."""

    attempt_count: int
    last_submitted_at: datetime | None
    last_was_correct: bool
    recent_event_submissions: int


def cooldown_remaining(history: AttemptHistory, now: datetime, policy: SubmissionPolicy) -> int:
    """Whole seconds left on the post-wrong-answer cooldown (0 if none)."""
    if history.last_submitted_at is None or history.last_was_correct:
        return 0
    elapsed = (now - as_utc(history.last_submitted_at)).total_seconds()
    remaining = policy.cooldown_seconds - elapsed
    if remaining <= 0:
        return 0
    return math.ceil(remaining)


def check_submission_allowed(history: AttemptHistory, now: datetime, policy: SubmissionPolicy) -> None:
    """Raise if any of the three independent checks fails.

    Raises:
        RateLimitError: window limit reached (``rate_limited``) or cooldown
            after a wrong answer still running (``cooldown_active``).
        AttemptsExhaustedError: attempt cap on this challenge reached.
    """
    if history.recent_event_submissions >= policy.window_max:
        raise RateLimitError(
            f"Rate limit exceeded. Max {policy.window_max} submissions per {policy.window_seconds}s.",
            reason=RateLimitError.WINDOW,
            retryAfter=policy.window_seconds,
        )

    if history.attempt_count >= policy.max_attempts:
        raise AttemptsExhaustedError("Max attempts reached for this challenge", attemptsLeft=0)

    remaining = cooldown_remaining(history, now, policy)
    if remaining > 0:
        raise RateLimitError(
            "Cooldown active after wrong attempt",
            reason=RateLimitError.COOLDOWN,
            cooldownRemaining=remaining,
        )


async def load_attempt_history(
    db: AsyncSession,
    event_id: str,
    challenge_id: str,
    uid: str,
    now: datetime,
    policy: SubmissionPolicy,
) -> AttemptHistory:
    """Read the submission log for one (uid, challenge) pair and the user's event window."""
    count_result = await db.execute(
        select(func.count())
        .select_from(Submission)
        .where(
            Submission.event_id == event_id,
            Submission.uid == uid,
            Submission.challenge_id == challenge_id,
        )
    )
    attempt_count = count_result.scalar_one()

    last = None
    if attempt_count:
        last_result = await db.execute(
            select(Submission)
            .where(
                Submission.event_id == event_id,
                Submission.uid == uid,
                Submission.challenge_id == challenge_id,
            )
            .order_by(Submission.submitted_at.desc(), Submission.id.desc())
            .limit(1)
        )
        last = last_result.scalar_one_or_none()

    window_start = now - timedelta(seconds=policy.window_seconds)
    recent_result = await db.execute(
        select(func.count())
        .select_from(Submission)
        .where(
            Submission.event_id == event_id,
            Submission.uid == uid,
            Submission.submitted_at >= window_start,
        )
    )

    return AttemptHistory(
        attempt_count=attempt_count,
        last_submitted_at=as_utc(last.submitted_at) if last else None,
        last_was_correct=bool(last.is_correct) if last else False,
        recent_event_submissions=recent_result.scalar_one(),
    )
