"""Badge award service with duplicate prevention."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Badge, User, UserBadge
from ctfscore.gamification.xp_service import grant_xp
from ctfscore.timeutils import utcnow

logger = logging.getLogger(__name__)


async def get_badge(db: AsyncSession, key: str) -> Badge | None:
    return await db.get(Badge, key)


async def earned_badge_keys(db: AsyncSession, uid: str) -> set[str]:
    result = await db.execute(select(UserBadge.badge_key).where(UserBadge.uid == uid))
    return set(result.scalars())


async def award_badge(db: AsyncSession, user: User, badge_key: str) -> bool:
    """Award a badge to a user and commit.

    Returns True if awarded, False if already earned or badge not found.
    Handles:
    1. Insert into user_badges (UNIQUE(uid, badge_key) guards races)
    2. Grant badge XP (idempotent via ``badge:{key}:{uid}``)
    """
    badge = await get_badge(db, badge_key)
    if badge is None:
        logger.warning("Badge not found: %s", badge_key)
        return False

    if badge_key in await earned_badge_keys(db, user.uid):
        return False

    db.add(UserBadge(uid=user.uid, badge_key=badge_key, earned_at=utcnow()))
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race against a concurrent award
        await db.rollback()
        await db.refresh(user)
        return False

    await grant_xp(
        db,
        user,
        amount=badge.xp_reward,
        source="badge",
        source_id=badge_key,
        description=f'Earned badge: "{badge.name}"',
        idempotency_key=f"badge:{badge_key}:{user.uid}",
    )
    await db.commit()
    logger.info("badge_awarded uid=%s badge=%s xp=%d", user.uid, badge_key, badge.xp_reward)
    return True
