"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from ctfscore.schemas import CamelModel
from ctfscore.users.schemas import UserStats


# --- Badge ---


class BadgeResponse(CamelModel):
    key: str
    name: str
    description: str
    icon: str
    rarity: str
    xp_reward: int
    earned: bool = False


class AllBadgesResponse(CamelModel):
    badges: list[BadgeResponse]


# --- Quest ---


class QuestRules(CamelModel):
    type: str
    target: int
    category: str | None = None


class QuestProgressResponse(CamelModel):
    progress: int = 0
    completed: bool = False


class QuestResponse(CamelModel):
    id: str
    title: str
    description: str
    active_from: datetime
    active_to: datetime
    xp_reward: int
    badge_reward: str | None = None
    rules: QuestRules
    user_progress: QuestProgressResponse


class ActiveQuestsResponse(CamelModel):
    quests: list[QuestResponse]


# --- Stats ---


class RecomputeStatsResponse(CamelModel):
    stats: UserStats
    new_badges: list[str]
