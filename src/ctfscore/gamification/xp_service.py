"""XP grant service with idempotency and level-up detection."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import User, XPLedger
from ctfscore.gamification.levels import compute_level
from ctfscore.timeutils import utcnow

logger = logging.getLogger(__name__)


async def increment_user(db: AsyncSession, user: User, **deltas: int) -> None:
    """Atomically add ``deltas`` to the user's counter columns, then reload the row.

    The UPDATE takes the row lock (the database write lock on SQLite) and
    holds it until the session commits, so the reloaded values are current
    and any further read-modify-write in this transaction is serialized.
    With no deltas this only takes the lock.
    """
    values = {name: getattr(User, name) + delta for name, delta in deltas.items()} or {"xp": User.xp}
    await db.execute(
        update(User)
        .where(User.uid == user.uid)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(user)


async def grant_xp(
    db: AsyncSession,
    user: User,
    amount: int,
    source: str,
    source_id: str,
    description: str,
    idempotency_key: str,
) -> bool:
    """Grant XP to a user. Returns True if granted, False if duplicate.

    Inserts the ledger entry, adds ``amount`` to ``users.xp`` in SQL and
    recomputes the level from the stored total. Flushes but does not commit.
    """
    existing = await db.execute(
        select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key)
    )
    if existing.scalar_one_or_none() is not None:
        return False

    db.add(XPLedger(
        uid=user.uid,
        amount=amount,
        source=source,
        source_id=source_id,
        description=description,
        idempotency_key=idempotency_key,
        created_at=utcnow(),
    ))
    await db.flush()

    await increment_user(db, user, xp=amount)
    old_level = user.level
    user.level = compute_level(user.xp)
    await db.flush()

    if user.level > old_level:
        logger.info("level_up uid=%s old=%d new=%d", user.uid, old_level, user.level)
    return True
