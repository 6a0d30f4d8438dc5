"""Submit-flag endpoint."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.dependencies import get_current_user
from ctfscore.config import Settings
from ctfscore.database import get_database, get_session
from ctfscore.db.models import User
from ctfscore.dependencies import get_app_settings
from ctfscore.gamification.handler import run_solve_side_effects, run_wrong_submission_side_effects
from ctfscore.scoring.schemas import SubmitFlagRequest, SubmitFlagResponse
from ctfscore.scoring.service import SubmissionService

router = APIRouter(prefix="/api", tags=["Scoring"])


@router.post(
    "/submit-flag",
    response_model=SubmitFlagResponse,
    response_model_exclude_none=True,
)
async def submit_flag(
    body: SubmitFlagRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> SubmitFlagResponse:
    """Check a flag, record the attempt and score the first correct one.

    Gamification runs after the response is sent.
    """
    uid = user.uid
    service = SubmissionService(db, settings)
    outcome = await service.submit(
        user,
        body.event_id,
        body.challenge_id,
        body.flag_text,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    database = get_database(request)
    if outcome.solve_event is not None:
        background_tasks.add_task(run_solve_side_effects, database, outcome.solve_event)
    elif not outcome.correct:
        background_tasks.add_task(run_wrong_submission_side_effects, database, uid)

    return SubmitFlagResponse(
        correct=outcome.correct,
        already_solved=outcome.already_solved,
        attempts_left=outcome.attempts_left,
        cooldown_remaining=outcome.cooldown_remaining,
        score_awarded=outcome.score_awarded,
    )
