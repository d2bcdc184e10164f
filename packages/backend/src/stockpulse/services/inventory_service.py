"""Inventory service — business logic for items and stock movements.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database.

Every state-changing method follows the same three steps:
1. change the row
2. append to the transaction log (same DB transaction)
3. commit, then broadcast exactly one InventoryEvent to the room

The broadcast happens only after the commit succeeds, so browsers are
never told about a change that rolled back. It's also the last step, and
Broadcaster.broadcast() never raises, so a dead socket can't fail the
request.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.db.models import InventoryItem, InventoryTransaction
from stockpulse.events.store import TransactionLog
from stockpulse.events.types import (
    ITEM_CREATED,
    ITEM_DELETED,
    ITEM_UPDATED,
    STOCK_ADJUSTED,
    InventoryEvent,
)
from stockpulse.realtime.broadcaster import Broadcaster
from stockpulse.schemas.inventory import ItemCreate, ItemRead, ItemUpdate

logger = structlog.get_logger()


class InventoryError(Exception):
    """Base class for inventory rule violations."""


class ItemNotFound(InventoryError):
    pass


class DuplicateSku(InventoryError):
    pass


class InsufficientStock(InventoryError):
    """Raised when a change would leave quantity negative or below reserved."""


class InventoryService:
    """Business logic for inventory items."""

    def __init__(
        self,
        db: AsyncSession,
        broadcaster: Broadcaster,
        room: str,
        actor: Optional[str] = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.room = room
        self.actor = actor
        self.log = TransactionLog(db)

    # ─── Reads ──────────────────────────────────────────

    async def list_items(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[InventoryItem]:
        query = select(InventoryItem).order_by(InventoryItem.name)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(InventoryItem.name.ilike(pattern), InventoryItem.sku.ilike(pattern))
            )
        if category:
            query = query.where(InventoryItem.category == category)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_item(self, item_id: uuid.UUID) -> Optional[InventoryItem]:
        return await self.db.get(InventoryItem, item_id)

    async def low_stock(self) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem)
            .where(InventoryItem.quantity <= InventoryItem.low_stock_threshold)
            .order_by(InventoryItem.quantity, InventoryItem.name)
        )
        return list(result.scalars().all())

    async def hazardous(self) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem)
            .where(InventoryItem.hazardous.is_(True))
            .order_by(InventoryItem.name)
        )
        return list(result.scalars().all())

    async def reserved(self) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem)
            .where(InventoryItem.reserved > 0)
            .order_by(InventoryItem.name)
        )
        return list(result.scalars().all())

    async def available(self) -> list[InventoryItem]:
        result = await self.db.execute(
            select(InventoryItem)
            .where(InventoryItem.quantity > InventoryItem.reserved)
            .order_by(InventoryItem.name)
        )
        return list(result.scalars().all())

    async def transactions(
        self,
        after_id: int = 0,
        limit: int = 100,
        types: Optional[list[str]] = None,
    ) -> list[InventoryTransaction]:
        return await self.log.read_all(after_id=after_id, event_types=types, limit=limit)

    async def item_transactions(
        self,
        item_id: uuid.UUID,
        after_id: int = 0,
        limit: int = 100,
        types: Optional[list[str]] = None,
    ) -> list[InventoryTransaction]:
        """History of one item, including items that were since deleted."""
        return await self.log.read_item(
            item_id, after_id=after_id, event_types=types, limit=limit
        )

    # ─── Writes ─────────────────────────────────────────

    async def create_item(self, body: ItemCreate) -> InventoryItem:
        existing = await self.db.execute(
            select(InventoryItem).where(InventoryItem.sku == body.sku)
        )
        if existing.scalars().first():
            raise DuplicateSku(f"SKU {body.sku!r} already exists")
        _check_reserved(body.quantity, body.reserved)

        item = InventoryItem(**body.model_dump())
        self.db.add(item)
        await self.db.flush()

        await self.log.append(
            ITEM_CREATED,
            item_id=item.id,
            quantity_change=item.quantity,
            data={"sku": item.sku, "name": item.name},
            actor=self.actor,
        )
        await self.db.commit()
        await self.db.refresh(item)

        await self._notify(ITEM_CREATED, {"item": _snapshot(item)})
        return item

    async def update_item(self, item_id: uuid.UUID, body: ItemUpdate) -> InventoryItem:
        item = await self._require(item_id)
        changes = body.model_dump(exclude_unset=True)
        old_quantity = item.quantity

        _check_reserved(
            changes.get("quantity", item.quantity),
            changes.get("reserved", item.reserved),
        )
        for key, value in changes.items():
            setattr(item, key, value)

        await self.log.append(
            ITEM_UPDATED,
            item_id=item.id,
            quantity_change=item.quantity - old_quantity,
            data={"fields": sorted(changes)},
            actor=self.actor,
        )
        await self.db.commit()
        await self.db.refresh(item)

        await self._notify(
            ITEM_UPDATED, {"item": _snapshot(item), "fields": sorted(changes)}
        )
        return item

    async def delete_item(self, item_id: uuid.UUID) -> None:
        item = await self._require(item_id)
        sku = item.sku

        await self.db.delete(item)
        await self.log.append(
            ITEM_DELETED,
            item_id=item_id,
            quantity_change=-item.quantity,
            data={"sku": sku},
            actor=self.actor,
        )
        await self.db.commit()

        await self._notify(ITEM_DELETED, {"item_id": str(item_id), "sku": sku})

    async def adjust_stock(
        self, item_id: uuid.UUID, delta: int, reason: Optional[str] = None
    ) -> InventoryItem:
        """Move stock in (+delta) or out (-delta)."""
        item = await self._require(item_id)
        new_quantity = item.quantity + delta
        if new_quantity < 0:
            raise InsufficientStock(
                f"Cannot remove {-delta} of {item.sku}: only {item.quantity} on hand"
            )
        _check_reserved(new_quantity, item.reserved)
        item.quantity = new_quantity

        await self.log.append(
            STOCK_ADJUSTED,
            item_id=item.id,
            quantity_change=delta,
            data={"reason": reason} if reason else {},
            actor=self.actor,
        )
        await self.db.commit()
        await self.db.refresh(item)

        await self._notify(
            STOCK_ADJUSTED,
            {"item": _snapshot(item), "delta": delta, "reason": reason},
        )
        return item

    # ─── Helpers ────────────────────────────────────────

    async def _require(self, item_id: uuid.UUID) -> InventoryItem:
        item = await self.get_item(item_id)
        if item is None:
            raise ItemNotFound(f"Item {item_id} not found")
        return item

    async def _notify(self, event_type: str, data: dict) -> None:
        event = InventoryEvent(room=self.room, type=event_type, data=data)
        delivered = await self.broadcaster.broadcast(self.room, event)
        logger.info(
            "inventory.changed",
            type=event_type,
            room=self.room,
            delivered=delivered,
            actor=self.actor,
        )


def _check_reserved(quantity: int, reserved: int) -> None:
    if reserved > quantity:
        raise InsufficientStock(
            f"Reserved ({reserved}) cannot exceed quantity ({quantity})"
        )


def _snapshot(item: InventoryItem) -> dict:
    return ItemRead.model_validate(item).model_dump(mode="json")
