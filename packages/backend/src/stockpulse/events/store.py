"""Transaction log — append-only record of inventory changes.

Learn: Every change to an item also INSERTs a row here, in the same
database transaction as the change itself. Rows are never updated or
deleted, so the log survives even when the item it describes is gone.

This is the durable side. The WebSocket push is the ephemeral side:
it may be missed, the log never is.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.db.models import InventoryTransaction


class TransactionLog:
    """Append-only transaction log backed by the database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        event_type: str,
        item_id: Optional[uuid.UUID] = None,
        quantity_change: int = 0,
        data: Optional[dict] = None,
        actor: Optional[str] = None,
    ) -> InventoryTransaction:
        """Append an entry. Flushed, not committed — the caller owns the commit."""
        entry = InventoryTransaction(
            item_id=item_id,
            type=event_type,
            quantity_change=quantity_change,
            data=data or {},
            actor=actor,
        )
        self.db.add(entry)
        await self.db.flush()  # get the auto-generated id
        return entry

    async def read_item(
        self,
        item_id: uuid.UUID,
        after_id: int = 0,
        event_types: Optional[list[str]] = None,
        limit: int = 100,
    ) -> list[InventoryTransaction]:
        """Entries for one item, oldest first. Still readable after the item is deleted."""
        query = (
            select(InventoryTransaction)
            .where(
                InventoryTransaction.item_id == item_id,
                InventoryTransaction.id > after_id,
            )
            .order_by(InventoryTransaction.id)
            .limit(limit)
        )
        if event_types:
            query = query.where(InventoryTransaction.type.in_(event_types))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def read_all(
        self,
        after_id: int = 0,
        event_types: Optional[list[str]] = None,
        limit: int = 100,
    ) -> list[InventoryTransaction]:
        """Entries across all items, oldest first."""
        query = (
            select(InventoryTransaction)
            .where(InventoryTransaction.id > after_id)
            .order_by(InventoryTransaction.id)
            .limit(limit)
        )
        if event_types:
            query = query.where(InventoryTransaction.type.in_(event_types))
        result = await self.db.execute(query)
        return list(result.scalars().all())
