"""StockPulse CLI — run the server, manage users, check on a running instance.

Usage:
    stockpulse serve                         # Run the web app (uvicorn)
    stockpulse create-user alice             # Add a login (prompts for password)
    stockpulse status                        # Health of a running server
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from stockpulse import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("STOCKPULSE_API_URL", DEFAULT_API_URL).rstrip("/")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when already inside an event loop
    (e.g. CliRunner invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="stockpulse")
def main():
    """StockPulse — inventory tracking with live updates."""


# ---------------------------------------------------------------------------
# stockpulse serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: STOCKPULSE_HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: STOCKPULSE_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the web server.

    Single process only: sessions and rooms live in memory.
    """
    import uvicorn

    from stockpulse.config import settings

    uvicorn.run(
        "stockpulse.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        workers=1,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# stockpulse create-user
# ---------------------------------------------------------------------------


@main.command("create-user")
@click.argument("username")
@click.option("--first-name", default="", help="Display name")
@click.option("--email", default="", help="Email address")
@click.password_option(help="Password (prompted if omitted)")
def create_user(username: str, first_name: str, email: str, password: str):
    """Create a login directly in the database."""
    if len(password) < 8:
        click.secho("Error: password must be at least 8 characters", fg="red", err=True)
        sys.exit(1)
    _run(_create_user_impl(username, first_name, email, password))


async def _create_user_impl(username: str, first_name: str, email: str, password: str):
    from stockpulse.config import settings
    from stockpulse.db.engine import init_models, make_engine, make_session_factory
    from stockpulse.services.user_service import UsernameTaken, UserService

    engine = make_engine(settings.database_url)
    try:
        await init_models(engine)
        async with make_session_factory(engine)() as db:
            svc = UserService(db, bcrypt_rounds=settings.bcrypt_rounds)
            try:
                user = await svc.register(
                    username=username,
                    password=password,
                    first_name=first_name,
                    email=email,
                )
            except UsernameTaken as e:
                click.secho(f"Error: {e}", fg="red", err=True)
                sys.exit(1)
        click.secho(f"Created user {user.username} ({user.id})", fg="green")
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# stockpulse status
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def status(as_json: bool):
    """Show health of a running server (STOCKPULSE_API_URL)."""
    _run(_status_impl(as_json))


async def _status_impl(as_json: bool):
    try:
        async with httpx.AsyncClient(base_url=_api_url(), timeout=10.0) as c:
            r = await c.get("/health")
            r.raise_for_status()
            data = r.json()
    except httpx.HTTPError as e:
        click.secho(f"Cannot reach {_api_url()}: {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(f"StockPulse {data.get('version', '?')}: {data.get('status')}", fg=color, bold=True)
    click.echo(f"  database     {data.get('database')}")
    click.echo(f"  sessions     {data.get('sessions')}")
    click.echo(f"  connections  {data.get('connections')}")
    rooms = data.get("rooms") or []
    click.echo(f"  rooms        {', '.join(rooms) if rooms else '—'}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
