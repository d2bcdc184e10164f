"""WebSocket endpoint — real-time inventory updates for browsers.

Learn: Each browser tab opens one connection to /ws. The handler:
1. Authenticates via the same session cookie the pages use
2. Accepts and registers the connection (CONNECTING → CONNECTED)
3. Processes client messages strictly in order: join-room, leave-room, ping
4. On close, however it happens, runs ConnectionManager.disconnect(),
   which removes the connection from every room

Inventory events don't come through this loop; the Broadcaster writes
straight to the socket. This loop only handles what the client says.

Messages are JSON objects, e.g. {"type": "join-room", "room": "inventory-updates"}.
A bare text frame that isn't JSON is taken as a room name to join. Binary
frames get an error reply.

The socket is tied to the session it was opened with: logging out, or the
session expiring, closes it with code 4001 (see ConnectionManager.close_session
and Broadcaster).
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from stockpulse.auth.dependencies import authorize, session_token
from stockpulse.realtime.connections import (
    SESSION_ENDED_CODE,
    ConnectionManager,
    ProtocolError,
)

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def inventory_websocket(websocket: WebSocket):
    """WebSocket endpoint for real-time inventory events.

    Optional ?room= query param joins that room right after connecting.
    """
    app = websocket.app
    settings = app.state.settings
    manager: ConnectionManager = app.state.connections

    # ── Authentication ──────────────────────────────────────
    token = session_token(websocket)
    identity = authorize(app.state.sessions, token)
    if identity is None and settings.realtime_require_session:
        logger.info("realtime.rejected", reason="no_session")
        await websocket.close(code=SESSION_ENDED_CODE, reason="Authentication required")
        return

    # ── Connection accepted ─────────────────────────────────
    conn = manager.create(websocket, identity, session_token=token if identity else None)
    try:
        await websocket.accept()
        manager.activate(conn)
        await conn.send({"type": "connected", "connection_id": conn.id})

        initial_room = websocket.query_params.get("room")
        if initial_room:
            await _reply(conn, manager, {"type": "join-room", "room": initial_room})

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            if not conn.is_connected:
                # Closed by the server (session ended); ignore late frames
                break
            text = message.get("text")
            if text is None:
                await conn.send({"type": "error", "detail": "Binary frames are not supported"})
                continue
            await _reply(conn, manager, _parse(text))
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.error("realtime.connection_error", connection_id=conn.id, exc_info=True)
    finally:
        manager.disconnect(conn)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except RuntimeError:
                # Transport already gone
                pass


async def _reply(conn, manager: ConnectionManager, message: dict[str, Any]) -> None:
    try:
        reply = manager.handle(conn, message)
    except ProtocolError as e:
        reply = {"type": "error", "detail": str(e)}
    if reply is not None:
        await conn.send(reply)


def _parse(data: str) -> dict[str, Any]:
    """Decode one client frame into a message dict."""
    try:
        message = json.loads(data)
    except json.JSONDecodeError:
        return {"type": "join-room", "room": data}
    if isinstance(message, str):
        return {"type": "join-room", "room": message}
    if not isinstance(message, dict):
        return {"type": None}
    return message
