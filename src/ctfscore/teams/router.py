"""Team router — /api/team/* endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.dependencies import get_current_user
from ctfscore.database import get_session
from ctfscore.db.models import User
from ctfscore.teams import service
from ctfscore.teams.schemas import (
    JoinCodeResponse,
    MyTeamResponse,
    TeamCreatedResponse,
    TeamCreateRequest,
    TeamDetail,
    TeamJoinedResponse,
    TeamJoinRequest,
    TeamLeftResponse,
    TeamMember,
)

router = APIRouter(prefix="/api/team", tags=["Teams"])


@router.post("/create", response_model=TeamCreatedResponse)
async def create_team(
    body: TeamCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TeamCreatedResponse:
    """Create a team and become its captain."""
    team = await service.create_team(db, user, body.name)
    return TeamCreatedResponse(team_id=team.id, join_code=team.join_code)


@router.post("/join", response_model=TeamJoinedResponse)
async def join_team(
    body: TeamJoinRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TeamJoinedResponse:
    team = await service.join_team(db, user, body.join_code)
    return TeamJoinedResponse(team_id=team.id, team_name=team.name)


@router.post("/leave", response_model=TeamLeftResponse)
async def leave_team(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TeamLeftResponse:
    await service.leave_team(db, user)
    return TeamLeftResponse()


@router.post("/rotate-code", response_model=JoinCodeResponse)
async def rotate_code(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> JoinCodeResponse:
    """Issue a new join code (captain only). The old code stops working."""
    return JoinCodeResponse(join_code=await service.rotate_join_code(db, user))


@router.get("/me", response_model=MyTeamResponse)
async def get_my_team(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MyTeamResponse:
    """Get the caller's team with its members, or ``team: null``."""
    team = await service.get_team(db, user.team_id) if user.team_id else None
    if team is None:
        return MyTeamResponse(team=None)

    members = await service.get_members(db, team.id)
    return MyTeamResponse(team=TeamDetail(
        id=team.id,
        name=team.name,
        join_code=team.join_code,
        captain_uid=team.captain_uid,
        member_count=len(members),
        created_at=team.created_at,
        members=[
            TeamMember(
                uid=m.uid,
                display_name=m.display_name,
                role="captain" if m.uid == team.captain_uid else "member",
                xp=m.xp,
                level=m.level,
            )
            for m in members
        ],
    ))
