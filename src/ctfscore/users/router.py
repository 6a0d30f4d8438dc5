"""Profile router — /api/profile/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.dependencies import get_current_user
from ctfscore.database import get_session
from ctfscore.db.models import User
from ctfscore.gamification.levels import xp_for_level
from ctfscore.users.schemas import ProfileResponse, ProfileUpdateRequest, UserStats
from ctfscore.users.service import get_badge_keys, update_profile

router = APIRouter(prefix="/api/profile", tags=["Profile"])


async def _profile_response(db: AsyncSession, user: User) -> ProfileResponse:
    return ProfileResponse(
        uid=user.uid,
        display_name=user.display_name,
        role=user.role,
        disabled=user.disabled,
        team_id=user.team_id,
        xp=user.xp,
        level=user.level,
        xp_for_next_level=xp_for_level(user.level + 1),
        stats=UserStats(
            solves_total=user.solves_total,
            correct_submissions=user.correct_submissions,
            wrong_submissions=user.wrong_submissions,
            solves_by_category=dict(user.solves_by_category or {}),
        ),
        badges=await get_badge_keys(db, user.uid),
    )


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Get the caller's profile, progression and earned badges."""
    return await _profile_response(db, user)


@router.post("/update", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Update the caller's display name."""
    user = await update_profile(db, user, body.display_name)
    return await _profile_response(db, user)
