"""Jinja2 page rendering.

Learn: Every page gets `user` and `is_authenticated` in its context, so
the nav bar can switch between "Log in" and the user menu.
Routes behind the auth gate already have request.state.user set; for
the rest (landing page, 404s) it's resolved here.
"""

from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import Response

from stockpulse.auth.dependencies import authorize, get_session_store, session_token

TEMPLATES_DIR = Path(__file__).parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def current_user(request: Request):
    if not hasattr(request.state, "user"):
        request.state.user = authorize(get_session_store(request), session_token(request))
    return request.state.user


def render(
    request: Request,
    template: str,
    status_code: int = 200,
    **context: Any,
) -> Response:
    user = current_user(request)
    context.setdefault("user", user)
    context.setdefault("is_authenticated", user is not None)
    context.setdefault("inventory_room", request.app.state.settings.inventory_room)
    return templates.TemplateResponse(
        request, template, context, status_code=status_code
    )
