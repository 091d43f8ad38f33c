"""Tests for health endpoints and error rendering."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from booking_api.api.v1.endpoints import health


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_ping(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ping")
        assert response.json() == {"message": "pong"}

    async def test_detailed_reports_database_down(self, client: AsyncClient) -> None:
        with patch.object(health, "check_database_connection", AsyncMock(return_value=False)):
            response = await client.get("/api/v1/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["database"] == "unhealthy"

    async def test_detailed_scheduler_disabled(
        self, client: AsyncClient, test_settings, monkeypatch
    ) -> None:
        monkeypatch.setattr(
            health, "settings", test_settings.model_copy(update={"scheduler_enabled": False})
        )
        with patch.object(health, "check_database_connection", AsyncMock(return_value=True)):
            response = await client.get("/api/v1/health/detailed")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler"] == "disabled"


@pytest.mark.asyncio
class TestErrorRendering:
    async def test_unknown_route(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/nowhere")

        assert response.status_code == 404
        assert response.json()["path"] == "/api/v1/nowhere"

    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ping", headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"
        assert "X-Process-Time" in response.headers
