"""Auth routes — login, signup, logout.

Learn: Plain HTML forms, no JS required:
- GET  /auth/login  → login form (redirects to /home if already logged in)
- POST /auth/login  → check credentials → new session → cookie → /home
- GET  /auth/signup → signup form
- POST /auth/signup → create account → logged in straight away → /home
- GET  /logout      → destroy session → close its sockets → clear cookie → /
- /login and /signup are short aliases that redirect to /auth/...

A successful login always destroys the browser's previous session
first, so an old token can't be reused after logging in again.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.auth.dependencies import (
    get_current_user_optional,
    get_session_store,
    session_token,
)
from stockpulse.auth.sessions import Identity
from stockpulse.db.engine import get_db
from stockpulse.services.user_service import (
    InvalidCredentials,
    UserService,
    UsernameTaken,
    identity_for,
)
from stockpulse.templating import render

router = APIRouter()

MIN_PASSWORD_LENGTH = 8


def _svc(request: Request, db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db, bcrypt_rounds=request.app.state.settings.bcrypt_rounds)


def _start_session(request: Request, identity: Identity) -> RedirectResponse:
    """Swap any existing session for a new one and redirect home."""
    settings = request.app.state.settings
    store = get_session_store(request)

    store.destroy(session_token(request))
    token = store.create(identity)

    response = RedirectResponse("/home", status_code=303)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=not settings.is_development,
    )
    return response


# ─── Aliases ─────────────────────────────────────────────


@router.get("/login", include_in_schema=False)
async def login_alias():
    return RedirectResponse("/auth/login", status_code=302)


@router.get("/signup", include_in_schema=False)
async def signup_alias():
    return RedirectResponse("/auth/signup", status_code=302)


# ─── Login ───────────────────────────────────────────────


@router.get("/auth/login")
async def login_page(
    request: Request,
    user: Optional[Identity] = Depends(get_current_user_optional),
):
    if user:
        return RedirectResponse("/home", status_code=302)
    return render(request, "login.html")


@router.post("/auth/login")
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    svc: UserService = Depends(_svc),
):
    """Login with username and password → session cookie."""
    try:
        user = await svc.authenticate(username.strip(), password)
    except InvalidCredentials as e:
        return render(
            request, "login.html", status_code=401, error=str(e), username=username
        )
    return _start_session(request, identity_for(user))


# ─── Signup ──────────────────────────────────────────────


@router.get("/auth/signup")
async def signup_page(
    request: Request,
    user: Optional[Identity] = Depends(get_current_user_optional),
):
    if user:
        return RedirectResponse("/home", status_code=302)
    return render(request, "signup.html")


@router.post("/auth/signup")
async def signup(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    svc: UserService = Depends(_svc),
):
    """Create an account and log straight in."""
    username = username.strip()
    form = {
        "username": username,
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
    }

    errors = []
    if not username:
        errors.append("Username is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if password != confirm_password:
        errors.append("Passwords do not match")
    if errors:
        return render(request, "signup.html", status_code=400, errors=errors, form=form)

    try:
        user = await svc.register(
            username=username,
            password=password,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email.strip(),
        )
    except UsernameTaken as e:
        return render(request, "signup.html", status_code=409, errors=[str(e)], form=form)

    return _start_session(request, identity_for(user))


# ─── Logout ──────────────────────────────────────────────


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(request: Request):
    """Destroy the session, close its sockets, and go back to the landing page."""
    token = session_token(request)
    get_session_store(request).destroy(token)
    if token:
        await request.app.state.connections.close_session(token)
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(request.app.state.settings.session_cookie_name)
    return response
