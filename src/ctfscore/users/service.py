"""User profile business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select

from ctfscore.db.models import User, UserBadge
from ctfscore.timeutils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DISPLAY_NAME_MAX = 64


async def get_user(db: AsyncSession, uid: str) -> User | None:
    return await db.get(User, uid)


async def get_badge_keys(db: AsyncSession, uid: str) -> list[str]:
    result = await db.execute(
        select(UserBadge.badge_key).where(UserBadge.uid == uid).order_by(UserBadge.earned_at, UserBadge.id)
    )
    return list(result.scalars())


async def update_profile(db: AsyncSession, user: User, display_name: str) -> User:
    """Update the caller's display name (trimmed, truncated)."""
    user.display_name = display_name.strip()[:DISPLAY_NAME_MAX]
    await db.commit()
    logger.info("profile_updated", uid=user.uid)
    return user


async def bootstrap_admin(db: AsyncSession, uid: str) -> bool:
    """
    Ensure ``uid`` has an admin profile.

    Creates the profile when missing and promotes an existing one.
    Returns True if anything changed.
    """
    if not uid:
        return False

    user = await db.get(User, uid)
    if user is None:
        db.add(User(uid=uid, display_name="Admin", role="admin", created_at=utcnow()))
        await db.commit()
        logger.info("bootstrap_admin_created", uid=uid)
        return True

    if user.role == "admin":
        return False

    user.role = "admin"
    await db.commit()
    logger.info("bootstrap_admin_promoted", uid=uid)
    return True
