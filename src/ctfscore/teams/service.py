"""Team membership business logic.

A user belongs to at most one team. The creator is the captain; others join
with the team's join code. The last member to leave deletes the team, while
solves keep the team id they were recorded with.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from ctfscore.db.models import Team, User
from ctfscore.errors import ForbiddenError, NotFoundError, ValidationError
from ctfscore.timeutils import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

TEAM_NAME_MIN = 2
TEAM_NAME_MAX = 30
JOIN_CODE_BYTES = 3
JOIN_CODE_ATTEMPTS = 10


def generate_join_code() -> str:
    """Six uppercase hex characters from a cryptographic random source."""
    return secrets.token_hex(JOIN_CODE_BYTES).upper()


def normalize_join_code(code: str) -> str:
    """Join codes are matched case-insensitively."""
    return code.strip().upper()


async def generate_unique_join_code(db: AsyncSession) -> str:
    for _ in range(JOIN_CODE_ATTEMPTS):
        code = generate_join_code()
        existing = await db.execute(select(Team.id).where(Team.join_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise RuntimeError(f"Failed to generate a unique join code after {JOIN_CODE_ATTEMPTS} attempts")


async def get_team(db: AsyncSession, team_id: str) -> Team | None:
    return await db.get(Team, team_id)


async def get_members(db: AsyncSession, team_id: str) -> list[User]:
    result = await db.execute(
        select(User).where(User.team_id == team_id).order_by(User.created_at, User.uid)
    )
    return list(result.scalars())


async def count_members(db: AsyncSession, team_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(User).where(User.team_id == team_id))
    return result.scalar_one()


async def _current_team(db: AsyncSession, user: User) -> Team:
    if not user.team_id:
        raise ValidationError("Not in a team", reason="not_in_team")
    team = await get_team(db, user.team_id)
    if team is None:
        raise NotFoundError("Team not found", reason="team_not_found")
    return team


async def create_team(db: AsyncSession, user: User, name: str) -> Team:
    """Create a team captained by ``user``."""
    if user.team_id:
        raise ValidationError("You are already in a team. Leave first.", reason="already_in_team")
    name = name.strip()
    if not TEAM_NAME_MIN <= len(name) <= TEAM_NAME_MAX:
        raise ValidationError(f"Team name must be {TEAM_NAME_MIN}-{TEAM_NAME_MAX} characters")

    team = Team(name=name, join_code=await generate_unique_join_code(db), captain_uid=user.uid, created_at=utcnow())
    db.add(team)
    await db.flush()
    user.team_id = team.id
    await db.commit()
    logger.info("team_created", team_id=team.id, uid=user.uid)
    return team


async def join_team(db: AsyncSession, user: User, join_code: str) -> Team:
    if user.team_id:
        raise ValidationError("Already in a team", reason="already_in_team")
    result = await db.execute(select(Team).where(Team.join_code == normalize_join_code(join_code)))
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError("Invalid join code", reason="invalid_join_code")

    user.team_id = team.id
    await db.commit()
    logger.info("team_joined", team_id=team.id, uid=user.uid)
    return team


async def leave_team(db: AsyncSession, user: User) -> None:
    """Leave the caller's team. A captain must be the last member to leave."""
    team = await _current_team(db, user)
    members = await count_members(db, team.id)
    if team.captain_uid == user.uid and members > 1:
        raise ValidationError("Transfer captaincy before leaving", reason="captain_must_transfer")

    user.team_id = None
    if members <= 1:
        await db.delete(team)
    await db.commit()
    logger.info("team_left", team_id=team.id, uid=user.uid, disbanded=members <= 1)


async def rotate_join_code(db: AsyncSession, user: User) -> str:
    team = await _current_team(db, user)
    if team.captain_uid != user.uid:
        raise ForbiddenError("Only the captain can rotate the join code")
    team.join_code = await generate_unique_join_code(db)
    await db.commit()
    logger.info("team_code_rotated", team_id=team.id, uid=user.uid)
    return team.join_code
