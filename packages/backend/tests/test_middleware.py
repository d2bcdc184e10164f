"""Tests for middleware — security headers, request IDs, error pages."""

import pytest
from httpx import ASGITransport, AsyncClient

from stockpulse.middleware.security import CONTENT_SECURITY_POLICY


@pytest.mark.asyncio
async def test_security_headers_on_health(unauthenticated_client):
    """Health endpoint returns security headers."""
    r = await unauthenticated_client.get("/health")
    assert r.status_code == 200
    assert r.headers["Content-Security-Policy"] == CONTENT_SECURITY_POLICY
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"


@pytest.mark.asyncio
async def test_security_headers_on_redirect(unauthenticated_client):
    """Gate redirects go through the same middleware."""
    r = await unauthenticated_client.get("/home")
    assert r.status_code == 302
    assert "Content-Security-Policy" in r.headers


def test_csp_allows_websocket_and_own_scripts():
    assert "connect-src 'self' ws: wss:" in CONTENT_SECURITY_POLICY
    assert "script-src 'self'" in CONTENT_SECURITY_POLICY


@pytest.mark.asyncio
async def test_request_id_generated(unauthenticated_client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await unauthenticated_client.get("/health")
    r2 = await unauthenticated_client.get("/health")
    assert "X-Request-ID" in r1.headers
    assert "X-Request-ID" in r2.headers
    # Each request gets a unique ID
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(unauthenticated_client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await unauthenticated_client.get("/health", headers={"X-Request-ID": custom_id})
    assert r.headers["X-Request-ID"] == custom_id


@pytest.mark.asyncio
async def test_no_hsts_on_http(unauthenticated_client):
    """HSTS header is NOT set on HTTP connections (only HTTPS)."""
    r = await unauthenticated_client.get("/health")
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_hsts_on_https(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        r = await ac.get("/health")
    assert r.headers["Strict-Transport-Security"].startswith("max-age=31536000")


# ─── Unhandled errors ───────────────────────────────────


def _boom_app(app):
    async def boom():
        raise RuntimeError("kaboom")

    app.add_api_route("/api/boom", boom)
    app.add_api_route("/boom", boom)
    return app


@pytest.mark.asyncio
async def test_unhandled_api_error_is_json(app):
    transport = ASGITransport(app=_boom_app(app), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/api/boom")
    assert r.status_code == 500
    assert r.json()["detail"] == "Something went wrong!"
    # Development mode includes the exception
    assert "kaboom" in r.json()["error"]


@pytest.mark.asyncio
async def test_unhandled_page_error_hides_detail_in_production(settings):
    from stockpulse.main import create_app

    prod = create_app(
        settings.model_copy(update={"environment": "production", "cors_origins": []})
    )
    transport = ASGITransport(app=_boom_app(prod), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/boom")
    await prod.state.engine.dispose()

    assert r.status_code == 500
    assert "Something went wrong!" in r.text
    assert "kaboom" not in r.text
