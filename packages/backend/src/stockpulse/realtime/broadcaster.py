"""Event broadcaster — push an inventory event to every member of a room.

Learn: Delivery is fire-and-forget. If nobody is in the room, the event
is simply dropped; if one socket fails mid-send, the others still get
theirs. The browser can always re-fetch /api/items to catch up, so
there's no ack, no retry, and no ordering across rooms.

A socket whose session has ended (expired or logged out) gets no more
events: it is closed instead, the same way logout closes it.

Errors never reach the caller. A failed send is logged and skipped —
the HTTP request that triggered the change has already succeeded.
"""

import asyncio
from typing import Optional

import structlog

from stockpulse.auth.sessions import SessionStore
from stockpulse.events.types import InventoryEvent
from stockpulse.realtime.connections import ConnectionManager
from stockpulse.realtime.rooms import RoomRegistry

logger = structlog.get_logger()


class Broadcaster:
    """Delivers events to room members. Holds no state of its own."""

    def __init__(
        self,
        registry: RoomRegistry,
        connections: ConnectionManager,
        sessions: Optional[SessionStore] = None,
    ):
        self.registry = registry
        self.connections = connections
        self.sessions = sessions

    async def broadcast(self, room: str, event: InventoryEvent) -> int:
        """Send event to everyone in room. Returns how many sends succeeded."""
        members = self.registry.members_of(room)
        if not members:
            logger.debug("realtime.broadcast_empty_room", room=room, type=event.type)
            return 0

        targets = []
        ended = []
        for connection_id in members:
            conn = self.connections.get(connection_id)
            if conn is None:
                # Closed between the snapshot and now
                continue
            if not self._session_live(conn):
                ended.append(conn)
                continue
            targets.append(conn)

        for conn in ended:
            logger.info("realtime.session_ended", connection_id=conn.id, room=room)
            await self.connections.close(conn)

        message = event.to_message()
        results = await asyncio.gather(
            *(conn.send(message) for conn in targets),
            return_exceptions=True,
        )

        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "realtime.delivery_failed",
                    connection_id=conn.id,
                    room=room,
                    type=event.type,
                    error=repr(result),
                )
            else:
                delivered += 1

        logger.debug(
            "realtime.broadcast",
            room=room,
            type=event.type,
            members=len(members),
            delivered=delivered,
        )
        return delivered

    def _session_live(self, conn) -> bool:
        # Anonymous sockets (no session) are never cut off here
        if self.sessions is None or conn.session_token is None:
            return True
        return self.sessions.resolve(conn.session_token) is not None
