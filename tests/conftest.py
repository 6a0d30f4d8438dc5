"""Shared test fixtures.

Each test gets its own file-backed SQLite database, so tests are isolated
and concurrent requests exercise real transactions.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.auth.tokens import create_access_token
from ctfscore.config import Settings
from ctfscore.db.models import Challenge, ChallengeSecret, Event, League, Team, User
from ctfscore.main import create_app, shutdown, startup
from ctfscore.scoring.flags import hash_flag, normalize_flag
from ctfscore.timeutils import utcnow

ADMIN_UID = "admin-uid"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file, Redis disabled."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ctfscore.db'}",
        database_auto_create=True,
        redis_url="",
        jwt_secret="test-secret",
        flag_pepper="test-pepper",
        bootstrap_admin_uid=ADMIN_UID,
        log_format="console",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """App with its lifecycle started (ASGITransport does not run lifespan)."""
    application = create_app(settings)
    await startup(application)
    yield application
    await shutdown(application)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with app.state.db.session() as session:
        yield session


def auth_headers(settings: Settings, uid: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(uid, settings)}"}


@pytest.fixture
def admin_headers(settings: Settings) -> dict[str, str]:
    return auth_headers(settings, ADMIN_UID)


# ---------------------------------------------------------------------------
# Arrangement helpers
# ---------------------------------------------------------------------------


async def make_team(db: AsyncSession, team_id: str, name: str) -> Team:
    team = Team(id=team_id, name=name, created_at=utcnow())
    db.add(team)
    await db.commit()
    return team


async def make_user(
    db: AsyncSession,
    uid: str,
    display_name: str | None = None,
    team_id: str | None = None,
    role: str = "participant",
    disabled: bool = False,
) -> User:
    user = User(
        uid=uid,
        display_name=display_name or uid.title(),
        team_id=team_id,
        role=role,
        disabled=disabled,
        created_at=utcnow(),
    )
    db.add(user)
    await db.commit()
    return user


async def make_league(db: AsyncSession, league_id: str = "league-1", name: str = "Spring League") -> League:
    now = utcnow()
    league = League(
        id=league_id,
        name=name,
        starts_at=now - timedelta(days=30),
        ends_at=now + timedelta(days=30),
        published=True,
        created_at=now,
    )
    db.add(league)
    await db.commit()
    return league


async def make_event(
    db: AsyncSession,
    event_id: str = "event-1",
    *,
    starts_at: datetime | None = None,
    ends_at: datetime | None = None,
    league_id: str | None = None,
    owner_id: str | None = None,
) -> Event:
    now = utcnow()
    event = Event(
        id=event_id,
        name=f"Event {event_id}",
        starts_at=starts_at or now - timedelta(hours=1),
        ends_at=ends_at or now + timedelta(hours=1),
        published=True,
        league_id=league_id,
        owner_id=owner_id,
        created_at=now,
    )
    db.add(event)
    await db.commit()
    return event


async def make_challenge(
    db: AsyncSession,
    settings: Settings,
    challenge_id: str,
    *,
    event_id: str = "event-1",
    flag: str | None = "CTF{test}",
    points: int = 100,
    category: str = "WEB",
    published: bool = True,
    case_sensitive: bool = False,
) -> Challenge:
    now = utcnow()
    challenge = Challenge(
        id=challenge_id,
        event_id=event_id,
        title=f"Challenge {challenge_id}",
        category=category,
        points_fixed=points,
        published=published,
        created_at=now,
        updated_at=now,
    )
    db.add(challenge)
    if flag is not None:
        db.add(ChallengeSecret(
            challenge_id=challenge_id,
            flag_hash=hash_flag(normalize_flag(flag, case_sensitive), settings.flag_pepper),
            case_sensitive=case_sensitive,
            created_at=now,
        ))
    await db.commit()
    return challenge
