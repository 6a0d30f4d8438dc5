"""Tests for health, readiness, version and request id propagation."""

import pytest
from httpx import AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ctfscore.db.models import Badge


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_ready(self, client: AsyncClient):
        data = (await client.get("/ready")).json()
        assert data["status"] == "ready"
        assert data["checks"] == {"database": "ok", "redis": "disabled"}

    @pytest.mark.asyncio
    async def test_ready_degraded_without_badges(self, client: AsyncClient, db_session: AsyncSession):
        await db_session.execute(delete(Badge))
        await db_session.commit()
        data = (await client.get("/ready")).json()
        assert data["status"] == "degraded"
        assert data["checks"]["database"].startswith("error")

    @pytest.mark.asyncio
    async def test_version(self, client: AsyncClient):
        data = (await client.get("/version")).json()
        assert data["service"] == "ctfscore"
        assert data["version"] == "0.1.0"
        assert data["environment"] == "development"


class TestRequestId:
    @pytest.mark.asyncio
    async def test_generated(self, client: AsyncClient):
        response = await client.get("/health")
        assert len(response.headers["X-Request-Id"]) == 36

    @pytest.mark.asyncio
    async def test_propagated(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-Id": "trace-123"})
        assert response.headers["X-Request-Id"] == "trace-123"

    @pytest.mark.asyncio
    async def test_error_body_shape(self, client: AsyncClient):
        response = await client.get("/api/profile/me")
        assert response.status_code == 401
        assert response.json()["reason"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_unsafe_id_replaced(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-Id": "bad id with spaces!"})
        assert response.headers["X-Request-Id"] != "bad id with spaces!"
        assert len(response.headers["X-Request-Id"]) == 36
