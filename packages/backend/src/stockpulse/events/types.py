"""Inventory event types.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover every event the frontend can receive.
The same names are used for the transaction log and the WebSocket
messages, so a browser can match a live push to a log entry.
"""

from dataclasses import dataclass, field
from typing import Any

# ─── Item lifecycle ──────────────────────────────────────

ITEM_CREATED = "inventory.item_created"
ITEM_UPDATED = "inventory.item_updated"
ITEM_DELETED = "inventory.item_deleted"

# ─── Stock movements ─────────────────────────────────────

STOCK_ADJUSTED = "inventory.stock_adjusted"

ALL_EVENT_TYPES = (
    ITEM_CREATED,
    ITEM_UPDATED,
    ITEM_DELETED,
    STOCK_ADJUSTED,
)


@dataclass(frozen=True)
class InventoryEvent:
    """One inventory change, as pushed to a room.

    Ephemeral: lives only for the duration of a broadcast call.
    The payload is opaque to the real-time layer.
    """

    room: str
    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type, "room": self.room, "data": self.data}
