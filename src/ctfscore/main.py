"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from ctfscore.admin.router import router as admin_router
from ctfscore.auth.tokens import TokenVerifier
from ctfscore.config import Settings, get_settings
from ctfscore.database import Database
from ctfscore.gamification.router import router as gamification_router
from ctfscore.gamification.seed import seed_badges
from ctfscore.health.router import router as health_router
from ctfscore.leaderboard.router import router as leaderboard_router
from ctfscore.middleware import setup_middleware
from ctfscore.redis_client import close_redis, create_redis
from ctfscore.scoring.router import router as scoring_router
from ctfscore.teams.router import router as teams_router
from ctfscore.users.router import router as users_router
from ctfscore.users.service import bootstrap_admin

logger = structlog.get_logger()


async def startup(app: FastAPI) -> None:
    """Attach the database, Redis and token verifier to ``app.state`` and seed reference data."""
    settings: Settings = app.state.settings
    database = Database(settings.database_url)
    app.state.db = database
    app.state.redis = create_redis(settings.redis_url)
    app.state.token_verifier = TokenVerifier.from_settings(settings)

    if settings.database_auto_create:
        await database.create_all()

    # Seed badge definitions (idempotent)
    try:
        async with database.session() as db:
            await seed_badges(db)
            await bootstrap_admin(db, settings.bootstrap_admin_uid)
    except SQLAlchemyError:
        logger.warning("startup_seed_failed", exc_info=True)


async def shutdown(app: FastAPI) -> None:
    """Dispose of everything ``startup`` created."""
    await close_redis(getattr(app.state, "redis", None))
    app.state.redis = None
    database: Database | None = getattr(app.state, "db", None)
    if database is not None:
        await database.close()
        app.state.db = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    await startup(app)
    yield
    await shutdown(app)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="CTF Scoring API",
        description="Flag submission, scoring, leaderboards and gamification for CTF events",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(scoring_router)
    app.include_router(leaderboard_router)
    app.include_router(gamification_router)
    app.include_router(users_router)
    app.include_router(teams_router)
    app.include_router(admin_router)

    return app


app = create_app()
