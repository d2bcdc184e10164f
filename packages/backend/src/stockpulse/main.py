"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. All shared in-memory state is built here, once, and hung off
app.state:

    app.state.sessions     SessionStore       (auth gate)
    app.state.rooms        RoomRegistry       (who listens where)
    app.state.connections  ConnectionManager  (socket lifecycle)
    app.state.broadcaster  Broadcaster        (inventory → sockets)

Nothing is a module global, so two apps (or two tests) never share
sessions or rooms. Lifespan creates tables at startup and tears the
in-memory state down at shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from stockpulse import __version__
from stockpulse.api import api_router
from stockpulse.auth.dependencies import LoginRequired
from stockpulse.auth.sessions import SessionStore
from stockpulse.config import Settings, settings as default_settings
from stockpulse.db.engine import init_models, make_engine, make_session_factory
from stockpulse.logconfig import configure_logging
from stockpulse.realtime.broadcaster import Broadcaster
from stockpulse.realtime.connections import ConnectionManager
from stockpulse.realtime.rooms import RoomRegistry
from stockpulse.templating import TEMPLATES_DIR, render

logger = structlog.get_logger()

STATIC_DIR = TEMPLATES_DIR.parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(
        "stockpulse.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    await init_models(app.state.engine)
    logger.info("stockpulse.database_ready")

    yield

    # Shutdown
    logger.info(
        "stockpulse.shutdown",
        connections=len(app.state.connections),
        sessions=len(app.state.sessions),
    )
    app.state.connections.disconnect_all()
    app.state.sessions.clear()
    await app.state.engine.dispose()


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api")


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        return RedirectResponse(exc.login_path, status_code=302)

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and not _is_api(request):
            return render(request, "404.html", status_code=404, message="Page not found")
        return await http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "http.unhandled_error",
            path=request.url.path,
            error=repr(exc),
            exc_info=exc,
        )
        settings: Settings = request.app.state.settings
        detail = repr(exc) if settings.is_development else None
        if _is_api(request):
            return JSONResponse(
                status_code=500,
                content={"detail": "Something went wrong!", "error": detail},
            )
        return render(
            request,
            "error.html",
            status_code=500,
            message="Something went wrong!",
            error=detail,
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = FastAPI(
        title="StockPulse",
        description="Inventory tracking with live updates",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # ── Shared state ──────────────────────────────────────────
    app.state.settings = settings
    app.state.engine = make_engine(settings.database_url, echo=settings.debug)
    app.state.session_factory = make_session_factory(app.state.engine)
    app.state.sessions = SessionStore(
        max_age_seconds=settings.session_max_age_seconds,
        max_sessions=settings.max_sessions,
    )
    app.state.rooms = RoomRegistry()
    app.state.connections = ConnectionManager(app.state.rooms)
    app.state.broadcaster = Broadcaster(
        app.state.rooms, app.state.connections, sessions=app.state.sessions
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from stockpulse.middleware.request_id import RequestIdMiddleware
    from stockpulse.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    _register_exception_handlers(app)

    # Mount routes
    app.include_router(api_router)

    from stockpulse.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    return app


# Default app instance (used by uvicorn: stockpulse.main:app)
app = create_app()
