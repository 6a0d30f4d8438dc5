"""Submission recorder — durable log of every governed attempt."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Submission
from ctfscore.errors import InternalError

logger = structlog.get_logger()


async def record_submission(
    db: AsyncSession,
    *,
    event_id: str,
    challenge_id: str,
    uid: str,
    team_id: str | None,
    is_correct: bool,
    prior_attempts: int,
    submitted_at: datetime,
    ip_hash: str | None = None,
    user_agent_hash: str | None = None,
) -> Submission:
    """Persist one attempt and commit.

    Raises:
        InternalError: the row could not be committed. Callers must not
            report a result for an attempt that was not recorded.
    """
    submission = Submission(
        event_id=event_id,
        challenge_id=challenge_id,
        uid=uid,
        team_id=team_id,
        submitted_at=submitted_at,
        is_correct=is_correct,
        attempt_number=prior_attempts + 1,
        ip_hash=ip_hash,
        user_agent_hash=user_agent_hash,
    )
    db.add(submission)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error(
            "submission_record_failed",
            event_id=event_id,
            challenge_id=challenge_id,
            uid=uid,
            exc_info=exc,
        )
        raise InternalError("Failed to record submission") from exc
    return submission
