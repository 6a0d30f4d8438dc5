"""Request-scoped accessors for handles attached to ``app.state``."""

from __future__ import annotations

from fastapi import Request
from redis.asyncio import Redis

from ctfscore.config import Settings, get_settings


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was created with (falls back to the environment)."""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_redis(request: Request) -> Redis | None:
    """Redis client, or None when Redis is not configured."""
    return getattr(request.app.state, "redis", None)
