"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ctfscore.db.base import Base


class Database:
    """Owns the engine and session factory for one process.

    Constructed in the app lifespan and attached to ``app.state.db``.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **_engine_options(url))
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create all tables (dev and test databases only)."""
        import ctfscore.db.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def session(self) -> AsyncSession:
        """Open a new session outside of a request."""
        return self.session_factory()

    async def close(self) -> None:
        """Dispose of the database engine."""
        await self.engine.dispose()


def _engine_options(url: str) -> dict[str, object]:
    if url.startswith("sqlite"):
        return {"echo": False, "connect_args": {"timeout": 30}}
    return {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "echo": False,
        "connect_args": {"statement_cache_size": 0},
    }


def get_database(request: Request) -> Database:
    """Get the database handle attached to the running app."""
    db: Database | None = getattr(request.app.state, "db", None)
    if db is None:
        msg = "Database not initialized. Is the app lifespan running?"
        raise RuntimeError(msg)
    return db


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with get_database(request).session() as session:
        yield session
