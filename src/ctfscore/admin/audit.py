"""Admin audit trail."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import AuditLog
from ctfscore.timeutils import utcnow

logger = structlog.get_logger()


async def write_audit_log(
    db: AsyncSession,
    admin_uid: str,
    action: str,
    entity_path: str,
    before: dict[str, Any] | None = None,
    after: dict[str, Any] | None = None,
) -> AuditLog:
    """Append an audit entry. Does not commit, so it lands with the audited change."""
    entry = AuditLog(
        admin_uid=admin_uid,
        action=action,
        entity_path=entity_path,
        before=before,
        after=after,
        created_at=utcnow(),
    )
    db.add(entry)
    logger.info("audit", admin_uid=admin_uid, action=action, entity_path=entity_path)
    return entry
