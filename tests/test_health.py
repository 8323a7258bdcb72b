"""Tests for health endpoint and app-level error mapping."""

import pytest
from httpx import ASGITransport, AsyncClient

from stonebridge.main import app


@pytest.fixture
async def client():
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test health endpoint returns ok."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.asyncio
async def test_database_not_configured_maps_to_503(client: AsyncClient):
    """Without init_db() every DB-backed endpoint answers with the structured 503."""
    response = await client.get("/v1/deposit-plans")
    assert response.status_code == 503
    body = response.json()
    assert body["error"]["code"] == "DATABASE_NOT_CONFIGURED"
    assert set(body["error"]) == {"code", "message", "detail"}
