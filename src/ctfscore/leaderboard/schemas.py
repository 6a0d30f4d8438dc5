"""Pydantic response models for leaderboard and analytics endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ctfscore.schemas import CamelModel


class LeaderboardResponse(CamelModel):
    scope: str
    owner_id: str
    kind: str
    rows: list[dict[str, Any]]
    updated_at: datetime | None = None


class AnalyticsResponse(CamelModel):
    scope: str
    owner_id: str
    data: dict[str, Any]
    updated_at: datetime | None = None


class RecomputeResponse(CamelModel):
    event_id: str
    individual_rows: int
    team_rows: int
