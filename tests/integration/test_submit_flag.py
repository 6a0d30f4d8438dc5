"""Tests for POST /api/submit-flag."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.config import Settings
from ctfscore.db.models import Solve, Submission, User, XPLedger
from ctfscore.gamification.seed import DEFAULT_BADGES
from ctfscore.timeutils import utcnow
from tests.conftest import auth_headers, make_challenge, make_event, make_team, make_user

BADGE_XP = {b["key"]: b["xp_reward"] for b in DEFAULT_BADGES}


def _body(challenge_id: str = "c1", flag: str = "CTF{test}", event_id: str = "event-1") -> dict[str, str]:
    return {"eventId": event_id, "challengeId": challenge_id, "flagText": flag}


async def _count(db: AsyncSession, model: type, *where: object) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(*where))
    return result.scalar_one()


@pytest.fixture
def alice(settings: Settings) -> dict[str, str]:
    return auth_headers(settings, "alice")


@pytest_asyncio.fixture
async def arena(db_session: AsyncSession, settings: Settings) -> None:
    await make_user(db_session, "alice", "Alice")
    await make_event(db_session)
    await make_challenge(db_session, settings, "c1", points=100, category="WEB")


class TestCorrectSubmission:
    @pytest.mark.asyncio
    async def test_first_solve_scores(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        response = await client.post("/api/submit-flag", json=_body(), headers=alice)
        assert response.status_code == 200
        data = response.json()
        assert data == {
            "correct": True,
            "alreadySolved": False,
            "attemptsLeft": 29,
            "cooldownRemaining": 0,
            "scoreAwarded": 100,
        }

        solve = await db_session.get(Solve, "alice_c1")
        assert solve is not None
        assert solve.points_awarded == 100
        assert await _count(db_session, Submission, Submission.uid == "alice") == 1

    @pytest.mark.asyncio
    async def test_leaderboard_updated(self, client: AsyncClient, alice, arena):
        await client.post("/api/submit-flag", json=_body(), headers=alice)

        response = await client.get("/api/events/event-1/leaderboard/individual")
        assert response.status_code == 200
        rows = response.json()["rows"]
        assert len(rows) == 1
        assert rows[0]["uid"] == "alice"
        assert rows[0]["displayName"] == "Alice"
        assert rows[0]["score"] == 100

    @pytest.mark.asyncio
    async def test_gamification_applied(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        await client.post("/api/submit-flag", json=_body(), headers=alice)

        profile = (await client.get("/api/profile/me", headers=alice)).json()
        badges = set(profile["badges"])
        assert {"first_solve", "speed_demon"} <= badges
        assert profile["xp"] == 200 + sum(BADGE_XP[k] for k in badges)
        assert profile["stats"]["solvesTotal"] == 1
        assert profile["stats"]["solvesByCategory"] == {"WEB": 1}

        solve_xp = await _count(db_session, XPLedger, XPLedger.idempotency_key == "solve:alice_c1")
        assert solve_xp == 1

    @pytest.mark.asyncio
    async def test_case_insensitive_match(self, client: AsyncClient, alice, arena):
        response = await client.post("/api/submit-flag", json=_body(flag="  ctf{TEST}  "), headers=alice)
        assert response.json()["correct"] is True

    @pytest.mark.asyncio
    async def test_case_sensitive_challenge(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        await make_challenge(db_session, settings, "c2", flag="CTF{Exact}", case_sensitive=True)
        response = await client.post("/api/submit-flag", json=_body("c2", "ctf{exact}"), headers=alice)
        assert response.json()["correct"] is False


class TestDuplicateSolve:
    @pytest.mark.asyncio
    async def test_second_correct_is_already_solved(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        await client.post("/api/submit-flag", json=_body(), headers=alice)
        response = await client.post("/api/submit-flag", json=_body(), headers=alice)

        assert response.status_code == 200
        data = response.json()
        assert data["correct"] is True
        assert data["alreadySolved"] is True
        assert "scoreAwarded" not in data
        assert await _count(db_session, Solve, Solve.uid == "alice") == 1
        assert await _count(db_session, Submission, Submission.uid == "alice") == 2

    @pytest.mark.asyncio
    async def test_score_counted_once(self, client: AsyncClient, alice, arena):
        await client.post("/api/submit-flag", json=_body(), headers=alice)
        await client.post("/api/submit-flag", json=_body(), headers=alice)

        rows = (await client.get("/api/events/event-1/leaderboard/individual")).json()["rows"]
        assert rows[0]["score"] == 100

    @pytest.mark.asyncio
    async def test_concurrent_correct_submissions_create_one_solve(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession
    ):
        responses = await asyncio.gather(*(
            client.post("/api/submit-flag", json=_body(), headers=alice) for _ in range(5)
        ))

        assert all(r.status_code == 200 for r in responses)
        assert all(r.json()["correct"] for r in responses)
        awarded = [r.json() for r in responses if "scoreAwarded" in r.json()]
        assert len(awarded) == 1
        assert sum(1 for r in responses if r.json()["alreadySolved"]) == 4
        assert await _count(db_session, Solve, Solve.uid == "alice") == 1
        assert await _count(db_session, Submission, Submission.uid == "alice") == 5

    @pytest.mark.asyncio
    async def test_concurrent_solves_keep_xp_and_stats_consistent(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        for challenge_id, category in (("c2", "WEB"), ("c3", "CRYPTO"), ("c4", "PWN")):
            await make_challenge(db_session, settings, challenge_id, points=100, category=category)

        responses = await asyncio.gather(*(
            client.post("/api/submit-flag", json=_body(cid), headers=alice) for cid in ("c1", "c2", "c3", "c4")
        ))
        assert all(r.json()["scoreAwarded"] == 100 for r in responses)

        result = await db_session.execute(
            select(User).where(User.uid == "alice").execution_options(populate_existing=True)
        )
        user = result.scalar_one()
        ledger_sum = await db_session.execute(
            select(func.coalesce(func.sum(XPLedger.amount), 0)).where(XPLedger.uid == "alice")
        )
        assert user.xp == ledger_sum.scalar_one()
        assert user.solves_total == 4
        assert user.correct_submissions == 4
        assert user.solves_by_category == {"WEB": 2, "CRYPTO": 1, "PWN": 1}
        assert await _count(db_session, XPLedger, XPLedger.source == "solve") == 4


class TestWrongSubmission:
    @pytest.mark.asyncio
    async def test_wrong_flag_starts_cooldown(self, client: AsyncClient, alice, arena):
        response = await client.post("/api/submit-flag", json=_body(flag="CTF{nope}"), headers=alice)
        assert response.status_code == 200
        assert response.json() == {
            "correct": False,
            "alreadySolved": False,
            "attemptsLeft": 29,
            "cooldownRemaining": 10,
        }

        retry = await client.post("/api/submit-flag", json=_body(), headers=alice)
        assert retry.status_code == 429
        assert retry.json()["reason"] == "cooldown_active"
        assert 0 < retry.json()["cooldownRemaining"] <= 10
        assert int(retry.headers["Retry-After"]) > 0

    @pytest.mark.asyncio
    async def test_rejected_attempt_not_recorded(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        await client.post("/api/submit-flag", json=_body(flag="CTF{nope}"), headers=alice)
        await client.post("/api/submit-flag", json=_body(), headers=alice)
        assert await _count(db_session, Submission, Submission.uid == "alice") == 1

    @pytest.mark.asyncio
    async def test_wrong_counter_incremented(self, client: AsyncClient, alice, arena):
        await client.post("/api/submit-flag", json=_body(flag="CTF{nope}"), headers=alice)
        profile = (await client.get("/api/profile/me", headers=alice)).json()
        assert profile["stats"]["wrongSubmissions"] == 1
        assert profile["xp"] == 0

    @pytest.mark.asyncio
    async def test_wrong_after_solve(self, client: AsyncClient, alice, arena):
        await client.post("/api/submit-flag", json=_body(), headers=alice)
        response = await client.post("/api/submit-flag", json=_body(flag="CTF{nope}"), headers=alice)
        data = response.json()
        assert data["correct"] is False
        assert data["alreadySolved"] is True


class TestGovernor:
    @pytest.mark.asyncio
    async def test_window_limit(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        now = utcnow()
        for i in range(10):
            db_session.add(Submission(
                event_id="event-1",
                challenge_id=f"other-{i}",
                uid="alice",
                submitted_at=now - timedelta(seconds=5),
                is_correct=True,
                attempt_number=1,
            ))
        await db_session.commit()

        response = await client.post("/api/submit-flag", json=_body(), headers=alice)
        assert response.status_code == 429
        assert response.json()["reason"] == "rate_limited"
        assert response.json()["retryAfter"] == settings.submission_rate_limit_window_seconds

    @pytest.mark.asyncio
    async def test_attempt_cap(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        old = utcnow() - timedelta(hours=1)
        for i in range(30):
            db_session.add(Submission(
                event_id="event-1",
                challenge_id="c1",
                uid="alice",
                submitted_at=old + timedelta(seconds=i),
                is_correct=False,
                attempt_number=i + 1,
            ))
        await db_session.commit()

        response = await client.post("/api/submit-flag", json=_body(), headers=alice)
        assert response.status_code == 403
        assert response.json()["reason"] == "attempts_exhausted"
        assert response.json()["attemptsLeft"] == 0

    @pytest.mark.asyncio
    async def test_last_attempt_reports_zero_left(self, client: AsyncClient, alice, arena, db_session: AsyncSession):
        old = utcnow() - timedelta(hours=1)
        for i in range(29):
            db_session.add(Submission(
                event_id="event-1",
                challenge_id="c1",
                uid="alice",
                submitted_at=old + timedelta(seconds=i),
                is_correct=False,
                attempt_number=i + 1,
            ))
        await db_session.commit()

        response = await client.post("/api/submit-flag", json=_body(flag="CTF{nope}"), headers=alice)
        assert response.status_code == 200
        assert response.json()["attemptsLeft"] == 0


class TestRejections:
    @pytest.mark.asyncio
    async def test_unknown_event(self, client: AsyncClient, alice, arena):
        response = await client.post("/api/submit-flag", json=_body(event_id="missing"), headers=alice)
        assert response.status_code == 404
        assert response.json()["reason"] == "event_not_found"

    @pytest.mark.asyncio
    async def test_event_not_live(self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings):
        now = utcnow()
        await make_event(db_session, "future", starts_at=now + timedelta(hours=1), ends_at=now + timedelta(hours=2))
        await make_challenge(db_session, settings, "f1", event_id="future")

        response = await client.post("/api/submit-flag", json=_body("f1", event_id="future"), headers=alice)
        assert response.status_code == 403
        assert response.json()["reason"] == "event_not_live"
        assert response.json()["status"] == "UPCOMING"

    @pytest.mark.asyncio
    async def test_ended_event(self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings):
        now = utcnow()
        await make_event(db_session, "past", starts_at=now - timedelta(hours=3), ends_at=now - timedelta(hours=2))
        await make_challenge(db_session, settings, "p1", event_id="past")

        response = await client.post("/api/submit-flag", json=_body("p1", event_id="past"), headers=alice)
        assert response.status_code == 403
        assert response.json()["status"] == "ENDED"

    @pytest.mark.asyncio
    async def test_unpublished_challenge(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        await make_challenge(db_session, settings, "hidden", published=False)
        response = await client.post("/api/submit-flag", json=_body("hidden"), headers=alice)
        assert response.status_code == 404
        assert response.json()["reason"] == "challenge_not_found"

    @pytest.mark.asyncio
    async def test_challenge_from_other_event(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        await make_event(db_session, "event-2")
        await make_challenge(db_session, settings, "x1", event_id="event-2")
        response = await client.post("/api/submit-flag", json=_body("x1"), headers=alice)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_flag_not_configured(
        self, client: AsyncClient, alice, arena, db_session: AsyncSession, settings: Settings
    ):
        await make_challenge(db_session, settings, "noflag", flag=None)
        response = await client.post("/api/submit-flag", json=_body("noflag"), headers=alice)
        assert response.status_code == 404
        assert response.json()["reason"] == "flag_not_configured"
        assert await _count(db_session, Submission, Submission.challenge_id == "noflag") == 0

    @pytest.mark.asyncio
    async def test_missing_fields(self, client: AsyncClient, alice, arena):
        response = await client.post("/api/submit-flag", json={"eventId": "event-1"}, headers=alice)
        assert response.status_code == 400
        assert response.json()["reason"] == "validation_error"

    @pytest.mark.asyncio
    async def test_no_token(self, client: AsyncClient, arena):
        response = await client.post("/api/submit-flag", json=_body())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_bad_token(self, client: AsyncClient, arena):
        response = await client.post("/api/submit-flag", json=_body(), headers={"Authorization": "Bearer junk"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_profile(self, client: AsyncClient, arena, settings: Settings):
        response = await client.post("/api/submit-flag", json=_body(), headers=auth_headers(settings, "ghost"))
        assert response.status_code == 403
        assert response.json()["reason"] == "profile_not_found"

    @pytest.mark.asyncio
    async def test_disabled_user(self, client: AsyncClient, arena, db_session: AsyncSession, settings: Settings):
        await make_user(db_session, "mallory", disabled=True)
        response = await client.post("/api/submit-flag", json=_body(), headers=auth_headers(settings, "mallory"))
        assert response.status_code == 403
        assert response.json()["reason"] == "account_disabled"


class TestTeams:
    @pytest.mark.asyncio
    async def test_team_leaderboard(self, client: AsyncClient, db_session: AsyncSession, settings: Settings):
        await make_team(db_session, "t1", "Red Team")
        await make_user(db_session, "bob", "Bob", team_id="t1")
        await make_user(db_session, "carol", "Carol", team_id="t1")
        await make_user(db_session, "dave", "Dave")
        await make_event(db_session)
        await make_challenge(db_session, settings, "c1", points=100)
        await make_challenge(db_session, settings, "c2", points=250)

        await client.post("/api/submit-flag", json=_body("c1"), headers=auth_headers(settings, "bob"))
        await client.post("/api/submit-flag", json=_body("c2"), headers=auth_headers(settings, "carol"))
        await client.post("/api/submit-flag", json=_body("c2"), headers=auth_headers(settings, "dave"))

        teams = (await client.get("/api/events/event-1/leaderboard/teams")).json()["rows"]
        assert teams == [{
            "teamId": "t1",
            "teamName": "Red Team",
            "score": 350,
            "lastSolveAt": teams[0]["lastSolveAt"],
        }]

        individual = (await client.get("/api/events/event-1/leaderboard/individual")).json()["rows"]
        assert [row["uid"] for row in individual] == ["carol", "dave", "bob"]

        solve = await db_session.get(Solve, "bob_c1")
        assert solve.team_id == "t1"

    @pytest.mark.asyncio
    async def test_team_player_badge(self, client: AsyncClient, db_session: AsyncSession, settings: Settings):
        await make_team(db_session, "t1", "Red Team")
        await make_user(db_session, "bob", "Bob", team_id="t1")
        await make_event(db_session)
        await make_challenge(db_session, settings, "c1")
        await make_challenge(db_session, settings, "c2")

        headers = auth_headers(settings, "bob")
        await client.post("/api/submit-flag", json=_body("c1"), headers=headers)
        await client.post("/api/submit-flag", json=_body("c2"), headers=headers)

        db_session.expire_all()
        bob = await db_session.get(User, "bob")
        assert bob.solves_total == 2
        badges = (await client.get("/api/profile/me", headers=headers)).json()["badges"]
        assert "team_player" in badges
