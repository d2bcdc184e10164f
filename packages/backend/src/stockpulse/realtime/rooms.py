"""Room registry — which connections listen to which rooms.

Learn: A room is just a name mapped to a set of connection ids. Rooms
are created on first join and pruned the moment they become empty, so
the registry only ever holds rooms somebody is actually in.

Two indexes are kept in step: room → members and connection → rooms.
The reverse index is what makes leave_all() cheap on disconnect, which
is the one call that must never be skipped (a forgotten membership is
the only way this module can leak).
"""

import threading

import structlog

logger = structlog.get_logger()


class RoomRegistry:
    """Room membership for live real-time connections."""

    def __init__(self):
        self._members: dict[str, set[str]] = {}
        self._rooms_by_conn: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def join(self, connection_id: str, room: str) -> bool:
        """Add connection to room. Returns False if it was already a member."""
        with self._lock:
            members = self._members.setdefault(room, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            self._rooms_by_conn.setdefault(connection_id, set()).add(room)
            return True

    def leave(self, connection_id: str, room: str) -> bool:
        """Remove connection from room. Returns False if it wasn't a member."""
        with self._lock:
            return self._leave_locked(connection_id, room)

    def leave_all(self, connection_id: str) -> set[str]:
        """Remove connection from every room it joined. Returns those rooms."""
        with self._lock:
            rooms = self._rooms_by_conn.pop(connection_id, set())
            for room in rooms:
                members = self._members.get(room)
                if members is None:
                    continue
                members.discard(connection_id)
                if not members:
                    del self._members[room]
        if rooms:
            logger.debug(
                "rooms.left_all", connection_id=connection_id, rooms=sorted(rooms)
            )
        return rooms

    def members_of(self, room: str) -> frozenset[str]:
        """Snapshot of room members; safe to iterate while others join/leave."""
        with self._lock:
            return frozenset(self._members.get(room, ()))

    def rooms_of(self, connection_id: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._rooms_by_conn.get(connection_id, ()))

    def room_names(self) -> list[str]:
        with self._lock:
            return sorted(self._members)

    def _leave_locked(self, connection_id: str, room: str) -> bool:
        members = self._members.get(room)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._members[room]

        rooms = self._rooms_by_conn.get(connection_id)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._rooms_by_conn[connection_id]
        return True
