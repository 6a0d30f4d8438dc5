"""Gamification API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.dependencies import get_current_user
from ctfscore.database import get_session
from ctfscore.db.models import Badge, QuestProgress, User
from ctfscore.gamification.badge_service import earned_badge_keys
from ctfscore.gamification.handler import GamificationHandler
from ctfscore.gamification.quest_service import active_quests
from ctfscore.gamification.schemas import (
    ActiveQuestsResponse,
    AllBadgesResponse,
    BadgeResponse,
    QuestProgressResponse,
    QuestResponse,
    QuestRules,
    RecomputeStatsResponse,
)
from ctfscore.timeutils import utcnow
from ctfscore.users.schemas import UserStats

router = APIRouter(prefix="/api/gamification", tags=["Gamification"])


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AllBadgesResponse:
    """Get the badge catalog, flagging the ones the caller has earned."""
    result = await db.execute(select(Badge).order_by(Badge.sort_order, Badge.key))
    earned = await earned_badge_keys(db, user.uid)
    return AllBadgesResponse(badges=[
        BadgeResponse(
            key=b.key,
            name=b.name,
            description=b.description,
            icon=b.icon,
            rarity=b.rarity,
            xp_reward=b.xp_reward,
            earned=b.key in earned,
        )
        for b in result.scalars()
    ])


@router.get("/quests", response_model=ActiveQuestsResponse)
async def list_active_quests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ActiveQuestsResponse:
    """Get active quests with the caller's progress."""
    quests = await active_quests(db, utcnow())

    progress_map: dict[str, QuestProgress] = {}
    if quests:
        result = await db.execute(
            select(QuestProgress).where(
                QuestProgress.uid == user.uid,
                QuestProgress.quest_id.in_([q.id for q in quests]),
            )
        )
        progress_map = {p.quest_id: p for p in result.scalars()}

    items = []
    for q in quests:
        p = progress_map.get(q.id)
        items.append(QuestResponse(
            id=q.id,
            title=q.title,
            description=q.description,
            active_from=q.active_from,
            active_to=q.active_to,
            xp_reward=q.xp_reward,
            badge_reward=q.badge_reward,
            rules=QuestRules(type=q.rule_type, target=q.rule_target, category=q.rule_category),
            user_progress=QuestProgressResponse(
                progress=p.progress if p else 0,
                completed=p.completed if p else False,
            ),
        ))
    return ActiveQuestsResponse(quests=items)


@router.post("/recompute-my-stats", response_model=RecomputeStatsResponse)
async def recompute_my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> RecomputeStatsResponse:
    """Rebuild the caller's stats from their submissions and solves, then re-check badges."""
    stats, new_badges = await GamificationHandler(db).recompute_stats(user.uid)
    return RecomputeStatsResponse(stats=UserStats(**stats), new_badges=new_badges)
