"""Pydantic models for profile endpoints."""

from __future__ import annotations

from pydantic import Field

from ctfscore.schemas import CamelModel


class UserStats(CamelModel):
    solves_total: int = 0
    correct_submissions: int = 0
    wrong_submissions: int = 0
    solves_by_category: dict[str, int] = {}


class ProfileResponse(CamelModel):
    uid: str
    display_name: str
    role: str
    disabled: bool
    team_id: str | None = None
    xp: int
    level: int
    xp_for_next_level: int
    stats: UserStats
    badges: list[str] = []


class ProfileUpdateRequest(CamelModel):
    display_name: str = Field(min_length=1, max_length=64)
