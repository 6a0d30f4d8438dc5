"""Pydantic models for admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator

from ctfscore.gamification.quest_service import RULE_TYPES
from ctfscore.gamification.schemas import QuestRules
from ctfscore.schemas import CamelModel

Visibility = Literal["public", "private"]


# --- Events ---


class EventCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=128)
    starts_at: datetime
    ends_at: datetime
    timezone: str = "UTC"
    published: bool = False
    league_id: str | None = None
    visibility: Visibility = "public"
    team_mode: str = "publicTeams"
    owner_id: str | None = None

    @model_validator(mode="after")
    def _check_window(self) -> EventCreateRequest:
        if self.starts_at >= self.ends_at:
            raise ValueError("startsAt must be before endsAt")
        return self


class EventUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    timezone: str | None = None
    published: bool | None = None
    league_id: str | None = None
    visibility: Visibility | None = None
    team_mode: str | None = None
    owner_id: str | None = None


class EventResponse(CamelModel):
    id: str
    name: str
    starts_at: datetime
    ends_at: datetime
    timezone: str
    published: bool
    league_id: str | None = None
    visibility: str
    team_mode: str
    owner_id: str | None = None
    status: str


# --- Leagues ---


class LeagueCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=128)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    published: bool = False


class LeagueUpdateRequest(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    published: bool | None = None


class LeagueResponse(CamelModel):
    id: str
    name: str
    starts_at: datetime
    ends_at: datetime
    published: bool


# --- Challenges ---


class ChallengeCreateRequest(CamelModel):
    event_id: str = Field(min_length=1)
    title: str = Field(min_length=1, max_length=128)
    category: str = Field(min_length=1, max_length=32)
    difficulty: int = Field(default=1, ge=1, le=5)
    points_fixed: int = Field(default=100, ge=0)
    description_md: str = ""
    published: bool = False
    flag_mode: Literal["standard", "decay", "unique"] = "standard"
    decay_min_points: int | None = Field(default=None, ge=0)
    decay_percent: int | None = Field(default=None, ge=0, le=100)

    @field_validator("category")
    @classmethod
    def _upper_category(cls, v: str) -> str:
        return v.upper()


class ChallengeUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=128)
    category: str | None = Field(default=None, min_length=1, max_length=32)
    difficulty: int | None = Field(default=None, ge=1, le=5)
    points_fixed: int | None = Field(default=None, ge=0)
    description_md: str | None = None
    published: bool | None = None
    flag_mode: Literal["standard", "decay", "unique"] | None = None
    decay_min_points: int | None = Field(default=None, ge=0)
    decay_percent: int | None = Field(default=None, ge=0, le=100)

    @field_validator("category")
    @classmethod
    def _upper_category(cls, v: str | None) -> str | None:
        return v.upper() if v is not None else None


class ChallengeResponse(CamelModel):
    id: str
    event_id: str
    title: str
    category: str
    difficulty: int
    points_fixed: int
    description_md: str
    published: bool
    flag_mode: str
    decay_min_points: int | None = None
    decay_percent: int | None = None


class SetFlagRequest(CamelModel):
    flag_text: str = Field(min_length=1, max_length=1024)
    case_sensitive: bool = False


# --- Logs ---


class SubmissionLogEntry(CamelModel):
    id: int
    event_id: str
    challenge_id: str
    challenge_title: str
    uid: str
    display_name: str
    team_id: str | None = None
    submitted_at: datetime
    is_correct: bool
    attempt_number: int


class SubmissionLogPage(CamelModel):
    submissions: list[SubmissionLogEntry]
    next_cursor: str | None = None


class SolveLogEntry(CamelModel):
    id: str
    event_id: str
    challenge_id: str
    challenge_title: str
    uid: str
    display_name: str
    team_id: str | None = None
    solved_at: datetime
    points_awarded: int


class SolveLogPage(CamelModel):
    solves: list[SolveLogEntry]
    next_cursor: str | None = None


# --- Gamification admin ---


class QuestCreateRequest(CamelModel):
    title: str = Field(min_length=1, max_length=128)
    description: str = ""
    active_from: datetime
    active_to: datetime
    xp_reward: int = Field(default=0, ge=0)
    badge_reward: str | None = None
    rules: QuestRules

    @field_validator("rules")
    @classmethod
    def _check_rules(cls, v: QuestRules) -> QuestRules:
        if v.type not in RULE_TYPES:
            raise ValueError(f"unknown quest rule type: {v.type}")
        if v.target < 1:
            raise ValueError("quest target must be at least 1")
        if v.type == "solve_category" and not v.category:
            raise ValueError("solve_category quests need a category")
        return v

    @model_validator(mode="after")
    def _check_window(self) -> QuestCreateRequest:
        if self.active_from >= self.active_to:
            raise ValueError("activeFrom must be before activeTo")
        return self


class QuestCreatedResponse(CamelModel):
    id: str
    title: str
    active_from: datetime
    active_to: datetime
    xp_reward: int
    badge_reward: str | None = None
    rules: QuestRules


class SuccessResponse(CamelModel):
    success: bool = True
    count: int | None = None
    detail: dict[str, Any] | None = None
