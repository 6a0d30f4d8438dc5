"""Event lifecycle derived from the clock."""

from __future__ import annotations

import enum
from datetime import datetime

from ctfscore.db.models import Event
from ctfscore.timeutils import as_utc, utcnow


class EventStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    ENDED = "ENDED"


def get_event_status(event: Event, now: datetime | None = None) -> EventStatus:
    """UPCOMING before ``starts_at``, ENDED after ``ends_at``, LIVE in between (bounds inclusive)."""
    now = as_utc(now) if now is not None else utcnow()
    if now < as_utc(event.starts_at):
        return EventStatus.UPCOMING
    if now > as_utc(event.ends_at):
        return EventStatus.ENDED
    return EventStatus.LIVE
