"""Event analytics folding and event status."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ctfscore.db.models import Event
from ctfscore.events.status import EventStatus, get_event_status
from ctfscore.leaderboard.analytics import MINUTE_BUCKETS_KEPT, apply_submission, empty_event_summary

T0 = datetime(2026, 3, 1, 12, 0, 30, tzinfo=timezone.utc)


class TestApplySubmission:
    def test_counts_correct_and_wrong(self):
        data = apply_submission(empty_event_summary(), "c1", False, T0)
        data = apply_submission(data, "c1", True, T0)
        assert data["submissionsTotal"] == 2
        assert data["solvesTotal"] == 1
        assert data["solvesByChallenge"] == {"c1": 1}
        assert data["wrongByChallenge"] == {"c1": 1}

    def test_repeat_correct_answer(self):
        data = apply_submission({}, "c1", True, T0, new_solve=False)
        assert data["submissionsTotal"] == 1
        assert data["solvesTotal"] == 0
        assert data["wrongByChallenge"] == {}

    def test_minute_buckets(self):
        data = apply_submission({}, "c1", False, T0)
        data = apply_submission(data, "c2", False, T0 + timedelta(seconds=20))
        data = apply_submission(data, "c2", False, T0 + timedelta(minutes=1))
        assert data["submissionsByMinute"] == [
            {"minuteKey": "2026-03-01T12:00", "count": 2},
            {"minuteKey": "2026-03-01T12:01", "count": 1},
        ]

    def test_keeps_last_sixty_buckets(self):
        data = empty_event_summary()
        for minute in range(MINUTE_BUCKETS_KEPT + 5):
            data = apply_submission(data, "c1", False, T0 + timedelta(minutes=minute))
        buckets = data["submissionsByMinute"]
        assert len(buckets) == MINUTE_BUCKETS_KEPT
        assert buckets[-1]["minuteKey"] == "2026-03-01T13:04"

    def test_does_not_mutate_input(self):
        original = empty_event_summary()
        apply_submission(original, "c1", True, T0)
        assert original == empty_event_summary()


class TestEventStatus:
    def _event(self) -> Event:
        return Event(id="e", name="E", starts_at=T0, ends_at=T0 + timedelta(hours=2))

    def test_upcoming(self):
        assert get_event_status(self._event(), T0 - timedelta(seconds=1)) is EventStatus.UPCOMING

    def test_live_at_bounds(self):
        event = self._event()
        assert get_event_status(event, T0) is EventStatus.LIVE
        assert get_event_status(event, T0 + timedelta(hours=2)) is EventStatus.LIVE

    def test_ended(self):
        assert get_event_status(self._event(), T0 + timedelta(hours=2, seconds=1)) is EventStatus.ENDED

    def test_naive_storage_values(self):
        event = Event(id="e", name="E", starts_at=T0.replace(tzinfo=None), ends_at=(T0 + timedelta(hours=1)).replace(tzinfo=None))
        assert get_event_status(event, T0 + timedelta(minutes=5)) is EventStatus.LIVE
