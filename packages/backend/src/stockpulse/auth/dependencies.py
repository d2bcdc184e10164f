"""FastAPI auth dependencies — the auth gate.

Learn: These are used as Depends() in routers to resolve the current
user from the session cookie. Two flavours:
1. get_current_user_optional — soft: returns None when not logged in
   (landing page, login page).
2. require_user — hard: raises LoginRequired, which the app-level
   exception handler turns into a redirect to the login page. The
   protected handler never runs.

The decision itself lives in authorize(), a plain function over the
SessionStore, so it can be tested without HTTP.
"""

from typing import Optional

from fastapi import Depends, Request
from starlette.requests import HTTPConnection

from stockpulse.auth.sessions import Identity, SessionStore


class LoginRequired(Exception):
    """Raised by the gate when a protected request has no live session."""

    def __init__(self, login_path: str = "/auth/login"):
        super().__init__(login_path)
        self.login_path = login_path


def authorize(store: SessionStore, token: Optional[str]) -> Optional[Identity]:
    """Gate decision: the identity to proceed with, or None to redirect.

    The only side effect is lazy eviction of an expired session inside
    SessionStore.resolve().
    """
    return store.resolve(token)


def session_token(conn: HTTPConnection) -> Optional[str]:
    """Read the session cookie from a request or WebSocket."""
    return conn.cookies.get(conn.app.state.settings.session_cookie_name)


def get_session_store(conn: HTTPConnection) -> SessionStore:
    return conn.app.state.sessions


def get_current_user_optional(request: Request) -> Optional[Identity]:
    """Resolve the session cookie (optional — None if not logged in)."""
    identity = authorize(get_session_store(request), session_token(request))
    request.state.user = identity
    return identity


def require_user(
    request: Request,
    identity: Optional[Identity] = Depends(get_current_user_optional),
) -> Identity:
    """Resolve the session cookie (required — redirect to login if absent)."""
    if identity is None:
        raise LoginRequired(request.app.state.settings.login_path)
    return identity
