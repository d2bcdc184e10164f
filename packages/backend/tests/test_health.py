"""Health endpoint tests."""

import pytest

from stockpulse import __version__


@pytest.mark.asyncio
async def test_health_returns_ok(unauthenticated_client):
    """Health endpoint should return server status and version — no login needed."""
    resp = await unauthenticated_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["version"] == __version__


@pytest.mark.asyncio
async def test_health_counts_sessions(client):
    data = (await client.get("/health")).json()
    assert data["sessions"] == 1
    assert data["connections"] == 0
    assert data["rooms"] == []
