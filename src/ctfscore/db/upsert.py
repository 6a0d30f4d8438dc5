"""Dialect-aware INSERT ... ON CONFLICT helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def _insert_for(db: AsyncSession, model: type) -> Any:  # noqa: ANN401
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


async def upsert(
    db: AsyncSession,
    model: type,
    values: dict[str, Any],
    index_elements: list[str],
    update_fields: list[str],
) -> None:
    """Insert ``values`` or overwrite ``update_fields`` on key conflict. Does not commit."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={field: getattr(stmt.excluded, field) for field in update_fields},
    )
    await db.execute(stmt)


async def insert_ignore(
    db: AsyncSession,
    model: type,
    values: dict[str, Any],
    index_elements: list[str],
) -> None:
    """Insert ``values`` unless the key already exists. Does not commit."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=index_elements)
    await db.execute(stmt)
