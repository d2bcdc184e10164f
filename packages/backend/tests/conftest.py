"""Test fixtures — a fresh app and database per test.

Learn: create_app() takes its Settings explicitly and builds all shared
state (sessions, rooms, connections) on app.state, so every test gets
a completely isolated app pointed at its own SQLite file in tmp_path.

Two client flavours:
1. `client` — httpx AsyncClient over ASGITransport, already logged in
2. `unauthenticated_client` — same, but with no session cookie

WebSocket tests use Starlette's TestClient instead (see `live_client`),
because httpx can't speak WebSocket. Entering it as a context manager
runs the lifespan and keeps HTTP calls and sockets on one event loop.
"""

import time
import uuid
from typing import Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from stockpulse.config import Settings
from stockpulse.db.engine import init_models
from stockpulse.main import create_app

TEST_PASSWORD = "correct-horse-battery"


class FakeTransport:
    """Stands in for a WebSocket: records what was sent, or fails on demand."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail
        self.closed_with: Optional[int] = None

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None):
        self.closed_with = code


def unique_username(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def signup_form(username: str, password: str = TEST_PASSWORD, **extra) -> dict:
    form = {
        "username": username,
        "password": password,
        "confirm_password": password,
        "first_name": extra.pop("first_name", "Test"),
    }
    form.update(extra)
    return form


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll predicate until true (server-side cleanup runs on another thread)."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'stockpulse-test.db'}",
        environment="development",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest_asyncio.fixture()
async def app(settings):
    """App with tables created. ASGITransport doesn't run lifespan, so do it here."""
    application = create_app(settings)
    await init_models(application.state.engine)
    yield application
    await application.state.engine.dispose()


@pytest_asyncio.fixture()
async def unauthenticated_client(app):
    """HTTP client with no session cookie."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client that has signed up and holds a live session cookie."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.post("/auth/signup", data=signup_form(unique_username("tester")))
        assert r.status_code == 303, r.text
        yield ac


@pytest.fixture()
def live_client(settings):
    """Starlette TestClient for WebSocket scenarios (runs lifespan)."""
    application = create_app(settings)
    with TestClient(application) as tc:
        yield tc


def login_live(tc: TestClient, username: str = None) -> str:
    """Sign up on a TestClient so its cookie jar holds a session."""
    username = username or unique_username("live")
    r = tc.post("/auth/signup", data=signup_form(username), follow_redirects=False)
    assert r.status_code == 303, r.text
    return username
