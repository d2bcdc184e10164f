"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running, the
database is reachable, and reports how much in-memory state is live
(sessions, sockets, rooms). Open — no login needed.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from stockpulse import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    state = request.app.state
    checks = {"server": "ok", "version": __version__}

    try:
        async with state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"

    return {
        "status": status,
        **checks,
        "sessions": len(state.sessions),
        "connections": len(state.connections),
        "rooms": state.rooms.room_names(),
    }
