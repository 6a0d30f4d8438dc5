"""Tests for leaderboard, standings and analytics reads."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.config import Settings
from tests.conftest import auth_headers, make_challenge, make_event, make_league, make_user


async def _submit(client: AsyncClient, settings: Settings, uid: str, challenge_id: str, flag: str = "CTF{test}",
                  event_id: str = "event-1") -> None:
    response = await client.post(
        "/api/submit-flag",
        json={"eventId": event_id, "challengeId": challenge_id, "flagText": flag},
        headers=auth_headers(settings, uid),
    )
    assert response.status_code == 200


class TestEventLeaderboard:
    @pytest.mark.asyncio
    async def test_empty_before_any_solve(self, client: AsyncClient, db_session: AsyncSession):
        await make_event(db_session)
        response = await client.get("/api/events/event-1/leaderboard/individual")
        assert response.status_code == 200
        assert response.json()["rows"] == []
        assert response.json()["updatedAt"] is None

    @pytest.mark.asyncio
    async def test_unknown_kind(self, client: AsyncClient, db_session: AsyncSession):
        await make_event(db_session)
        response = await client.get("/api/events/event-1/leaderboard/global")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_event(self, client: AsyncClient):
        response = await client.get("/api/events/nope/leaderboard/individual")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ranking_ties_favor_earlier_solver(
        self, client: AsyncClient, db_session: AsyncSession, settings: Settings
    ):
        await make_event(db_session)
        for uid in ("alice", "bob", "carol"):
            await make_user(db_session, uid)
        await make_challenge(db_session, settings, "c1", points=100)
        await make_challenge(db_session, settings, "c2", points=200)

        await _submit(client, settings, "bob", "c1")
        await _submit(client, settings, "alice", "c1")
        await _submit(client, settings, "carol", "c2")

        rows = (await client.get("/api/events/event-1/leaderboard/individual")).json()["rows"]
        assert [(r["uid"], r["score"]) for r in rows] == [("carol", 200), ("bob", 100), ("alice", 100)]


class TestEventAnalytics:
    @pytest.mark.asyncio
    async def test_counts_submissions(self, client: AsyncClient, db_session: AsyncSession, settings: Settings,
                                      admin_headers):
        await make_event(db_session)
        await make_user(db_session, "alice")
        await make_user(db_session, "bob")
        await make_challenge(db_session, settings, "c1")

        await _submit(client, settings, "alice", "c1", flag="CTF{wrong}")
        await _submit(client, settings, "bob", "c1")

        response = await client.get("/api/events/event-1/analytics", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["submissionsTotal"] == 2
        assert data["solvesTotal"] == 1
        assert data["solvesByChallenge"] == {"c1": 1}
        assert data["wrongByChallenge"] == {"c1": 1}
        assert sum(b["count"] for b in data["submissionsByMinute"]) == 2

    @pytest.mark.asyncio
    async def test_duplicate_solve_not_counted(self, client: AsyncClient, db_session: AsyncSession,
                                               settings: Settings, admin_headers):
        await make_event(db_session)
        await make_user(db_session, "alice")
        await make_challenge(db_session, settings, "c1")

        await _submit(client, settings, "alice", "c1")
        await _submit(client, settings, "alice", "c1")

        data = (await client.get("/api/events/event-1/analytics", headers=admin_headers)).json()["data"]
        assert data["submissionsTotal"] == 2
        assert data["solvesTotal"] == 1
        assert data["wrongByChallenge"] == {}

    @pytest.mark.asyncio
    async def test_owner_allowed_participant_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, settings: Settings
    ):
        await make_user(db_session, "olivia")
        await make_user(db_session, "alice")
        await make_event(db_session, owner_id="olivia")

        owner = await client.get("/api/events/event-1/analytics", headers=auth_headers(settings, "olivia"))
        assert owner.status_code == 200
        assert owner.json()["data"] == {}

        other = await client.get("/api/events/event-1/analytics", headers=auth_headers(settings, "alice"))
        assert other.status_code == 403


class TestLeague:
    @pytest.mark.asyncio
    async def test_standings_and_retention(self, client: AsyncClient, db_session: AsyncSession, settings: Settings):
        await make_league(db_session)
        await make_event(db_session, "event-1", league_id="league-1")
        await make_event(db_session, "event-2", league_id="league-1")
        await make_user(db_session, "alice", "Alice")
        await make_user(db_session, "bob", "Bob")
        await make_challenge(db_session, settings, "a1", event_id="event-1", points=100)
        await make_challenge(db_session, settings, "b1", event_id="event-2", points=150)

        await _submit(client, settings, "alice", "a1", event_id="event-1")
        await _submit(client, settings, "bob", "b1", event_id="event-2")
        await _submit(client, settings, "alice", "b1", event_id="event-2")

        rows = (await client.get("/api/leagues/league-1/standings/individual")).json()["rows"]
        assert [(r["uid"], r["score"]) for r in rows] == [("alice", 250), ("bob", 150)]

        analytics = (await client.get("/api/leagues/league-1/analytics")).json()["data"]
        assert analytics["participantsTotal"] == 2
        assert analytics["participationByEvent"] == {"event-1": 1, "event-2": 2}
        assert analytics["retentionBuckets"] == {"one": 1, "two": 1, "threePlus": 0}

    @pytest.mark.asyncio
    async def test_unknown_league(self, client: AsyncClient):
        assert (await client.get("/api/leagues/nope/standings/teams")).status_code == 404
        assert (await client.get("/api/leagues/nope/analytics")).status_code == 404
