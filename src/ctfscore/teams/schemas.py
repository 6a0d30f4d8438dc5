"""Pydantic models for team endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from ctfscore.schemas import CamelModel


class TeamCreateRequest(CamelModel):
    name: str = Field(min_length=2, max_length=30)


class TeamJoinRequest(CamelModel):
    join_code: str = Field(min_length=1, max_length=16)


class TeamCreatedResponse(CamelModel):
    team_id: str
    join_code: str


class TeamJoinedResponse(CamelModel):
    team_id: str
    team_name: str


class JoinCodeResponse(CamelModel):
    join_code: str


class TeamMember(CamelModel):
    uid: str
    display_name: str
    role: str
    xp: int
    level: int


class TeamDetail(CamelModel):
    id: str
    name: str
    join_code: str | None = None
    captain_uid: str | None = None
    member_count: int
    created_at: datetime | None = None
    members: list[TeamMember] = []


class MyTeamResponse(CamelModel):
    team: TeamDetail | None = None


class TeamLeftResponse(CamelModel):
    success: bool = True
