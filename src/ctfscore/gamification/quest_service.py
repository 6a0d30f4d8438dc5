"""Quest progress tracking."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Quest, QuestProgress, User
from ctfscore.gamification.badge_service import award_badge
from ctfscore.gamification.xp_service import grant_xp, increment_user

logger = logging.getLogger(__name__)

RULE_TYPES = ("solve_total", "solve_category", "participate_event")


def quest_applies(quest: Quest, category: str) -> bool:
    """Whether a solve in ``category`` advances ``quest``."""
    if quest.rule_type in ("solve_total", "participate_event"):
        return True
    if quest.rule_type == "solve_category":
        return category.upper() == (quest.rule_category or "").upper()
    return False


async def active_quests(db: AsyncSession, now: datetime) -> list[Quest]:
    result = await db.execute(
        select(Quest)
        .where(Quest.active_from <= now, Quest.active_to >= now)
        .order_by(Quest.active_to)
    )
    return list(result.scalars())


async def get_progress(db: AsyncSession, quest_id: str, uid: str) -> QuestProgress | None:
    result = await db.execute(
        select(QuestProgress).where(QuestProgress.quest_id == quest_id, QuestProgress.uid == uid)
    )
    return result.scalar_one_or_none()


async def advance_quests(db: AsyncSession, user: User, category: str, now: datetime) -> list[str]:
    """Advance every active, uncompleted quest this solve counts toward.

    Holds the user lock while progress rows are read and bumped. Completing a
    quest grants its XP and optional badge. Returns the ids of quests
    completed by this call.
    """
    await increment_user(db, user)
    completed: list[Quest] = []
    for quest in await active_quests(db, now):
        if not quest_applies(quest, category):
            continue

        progress = await get_progress(db, quest.id, user.uid)
        if progress is None:
            progress = QuestProgress(quest_id=quest.id, uid=user.uid, progress=0, completed=False, updated_at=now)
            db.add(progress)
        if progress.completed:
            continue

        progress.progress += 1
        progress.updated_at = now
        if progress.progress >= quest.rule_target:
            progress.completed = True
            completed.append(quest)

    for quest in completed:
        await grant_xp(
            db,
            user,
            amount=quest.xp_reward,
            source="quest",
            source_id=quest.id,
            description=f'Completed quest: "{quest.title}"',
            idempotency_key=f"quest:{quest.id}:{user.uid}",
        )
        logger.info("Quest completed uid=%s quest=%s", user.uid, quest.id)
    completed_ids = [quest.id for quest in completed]
    badge_rewards = [quest.badge_reward for quest in completed if quest.badge_reward]
    await db.commit()

    for badge_key in badge_rewards:
        await award_badge(db, user, badge_key)

    return completed_ids
