"""Connection lifecycle — one state machine per WebSocket.

Learn: Every socket goes through the same states:

    CONNECTING ──accept──▶ CONNECTED ──close──▶ DISCONNECTED
                              │  ▲
                              └──┘ join-room / leave-room / ping

DISCONNECTED is terminal and reachable from every state. Reaching it
always calls RoomRegistry.leave_all(), whatever the reason for the close
(client hung up, network dropped, server shutting down). That's the whole
leak-prevention story: no path out of a connection skips cleanup.

ConnectionManager is the only thing that mutates Connection objects and
the only caller of RoomRegistry.join/leave/leave_all.
"""

import enum
import threading
import uuid
from typing import Any, Optional, Protocol

import structlog

from stockpulse.auth.sessions import Identity
from stockpulse.realtime.rooms import RoomRegistry

logger = structlog.get_logger()

MAX_ROOM_NAME_LENGTH = 200

# Close code sent when the session behind a socket ends (logout or expiry)
SESSION_ENDED_CODE = 4001


class Transport(Protocol):
    """Anything we can push JSON down. FastAPI's WebSocket fits."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectionClosed(Exception):
    """Raised when sending to a connection that isn't CONNECTED."""


class ProtocolError(Exception):
    """Raised for a client message we can't act on."""


class Connection:
    """A single live real-time socket."""

    def __init__(
        self,
        transport: Transport,
        identity: Optional[Identity] = None,
        session_token: Optional[str] = None,
    ):
        self.id = uuid.uuid4().hex
        self.transport = transport
        self.identity = identity
        self.session_token = session_token
        self.state = ConnectionState.CONNECTING
        self.rooms: set[str] = set()

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def send(self, message: dict[str, Any]) -> None:
        if not self.is_connected:
            raise ConnectionClosed(f"Connection {self.id} is {self.state.value}")
        await self.transport.send_json(message)

    def __repr__(self) -> str:
        return f"<Connection {self.id} {self.state.value} rooms={sorted(self.rooms)}>"


class ConnectionManager:
    """Owns every live Connection and drives its state transitions."""

    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    def get(self, connection_id: str) -> Optional[Connection]:
        """Look up a CONNECTED connection. Closed ones are never returned."""
        conn = self._connections.get(connection_id)
        if conn is None or not conn.is_connected:
            return None
        return conn

    # ─── Transitions ────────────────────────────────────

    def create(
        self,
        transport: Transport,
        identity: Optional[Identity] = None,
        session_token: Optional[str] = None,
    ) -> Connection:
        """New connection in CONNECTING; not yet visible to broadcasts."""
        return Connection(transport, identity, session_token)

    def activate(self, conn: Connection) -> Connection:
        """CONNECTING → CONNECTED, after the handshake succeeded."""
        if conn.state is not ConnectionState.CONNECTING:
            raise ProtocolError(f"Cannot activate a {conn.state.value} connection")
        with self._lock:
            conn.state = ConnectionState.CONNECTED
            self._connections[conn.id] = conn
        logger.info(
            "realtime.connected",
            connection_id=conn.id,
            user_id=conn.identity.user_id if conn.identity else None,
        )
        return conn

    def join(self, conn: Connection, room: str) -> bool:
        """CONNECTED → CONNECTED: subscribe to room (idempotent)."""
        self._require_connected(conn)
        room = _clean_room_name(room)
        added = self.registry.join(conn.id, room)
        conn.rooms.add(room)
        if added:
            logger.info("realtime.joined", connection_id=conn.id, room=room)
        return added

    def leave(self, conn: Connection, room: str) -> bool:
        """CONNECTED → CONNECTED: unsubscribe from room (no-op if not a member)."""
        self._require_connected(conn)
        room = _clean_room_name(room)
        removed = self.registry.leave(conn.id, room)
        conn.rooms.discard(room)
        if removed:
            logger.info("realtime.left", connection_id=conn.id, room=room)
        return removed

    def disconnect(self, conn: Connection) -> None:
        """Any state → DISCONNECTED. Always clears room membership."""
        with self._lock:
            already_closed = conn.state is ConnectionState.DISCONNECTED
            conn.state = ConnectionState.DISCONNECTED
            self._connections.pop(conn.id, None)

        rooms = self.registry.leave_all(conn.id)
        conn.rooms.clear()
        if not already_closed:
            logger.info(
                "realtime.disconnected",
                connection_id=conn.id,
                rooms=sorted(rooms),
            )

    def disconnect_all(self) -> None:
        """Server shutdown: every connection goes to DISCONNECTED."""
        with self._lock:
            conns = list(self._connections.values())
        for conn in conns:
            self.disconnect(conn)

    def for_session(self, token: str) -> list[Connection]:
        """Live connections opened with this session token."""
        with self._lock:
            return [c for c in self._connections.values() if c.session_token == token]

    async def close(
        self,
        conn: Connection,
        code: int = SESSION_ENDED_CODE,
        reason: str = "Session ended",
    ) -> None:
        """Server-initiated close: DISCONNECTED first, then close the socket."""
        self.disconnect(conn)
        try:
            await conn.transport.close(code=code, reason=reason)
        except Exception as e:
            logger.warning("realtime.close_failed", connection_id=conn.id, error=repr(e))

    async def close_session(self, token: str) -> int:
        """Close every socket that belongs to a session that just ended."""
        conns = self.for_session(token)
        for conn in conns:
            await self.close(conn)
        if conns:
            logger.info("realtime.session_closed", connections=len(conns))
        return len(conns)

    # ─── Client messages ────────────────────────────────

    def handle(self, conn: Connection, message: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Apply one client message in order. Returns the reply, if any.

        Supported: join-room, leave-room, ping.
        Raises ProtocolError for anything else.
        """
        msg_type = message.get("type")

        if msg_type == "join-room":
            room = _room_from(message)
            self.join(conn, room)
            return {"type": "joined", "room": room.strip()}

        if msg_type == "leave-room":
            room = _room_from(message)
            self.leave(conn, room)
            return {"type": "left", "room": room.strip()}

        if msg_type == "ping":
            return {"type": "pong"}

        raise ProtocolError(f"Unknown message type: {msg_type!r}")

    def _require_connected(self, conn: Connection) -> None:
        if not conn.is_connected:
            raise ConnectionClosed(f"Connection {conn.id} is {conn.state.value}")


def _room_from(message: dict[str, Any]) -> str:
    room = message.get("room")
    if not isinstance(room, str):
        raise ProtocolError("'room' must be a string")
    return room


def _clean_room_name(room: str) -> str:
    room = room.strip()
    if not room:
        raise ProtocolError("Room name must not be empty")
    if len(room) > MAX_ROOM_NAME_LENGTH:
        raise ProtocolError(f"Room name longer than {MAX_ROOM_NAME_LENGTH} characters")
    return room
