"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.config import Settings
from ctfscore.database import get_session
from ctfscore.db.models import Badge
from ctfscore.dependencies import get_app_settings, get_redis

router = APIRouter()

_HEALTHY = ("ok", "disabled")


async def _check_database(db: AsyncSession) -> str:
    """Query a real table so a reachable but unmigrated database reports an error."""
    try:
        badges = (await db.execute(select(func.count()).select_from(Badge))).scalar_one()
    except SQLAlchemyError as exc:
        return f"error: {exc.__class__.__name__}"
    return "ok" if badges else "error: badge catalog not seeded"


async def _check_redis(redis: Redis | None) -> str:
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except (RedisError, OSError) as exc:
        return f"error: {exc.__class__.__name__}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: Redis | None = Depends(get_redis),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: schema reachable and seeded; Redis reachable when configured."""
    checks = {
        "database": await _check_database(db),
        "redis": await _check_redis(redis),
    }
    ready = all(value in _HEALTHY for value in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:  # noqa: B008
    return {
        "service": "ctfscore",
        "version": settings.app_version,
        "environment": settings.environment,
    }
