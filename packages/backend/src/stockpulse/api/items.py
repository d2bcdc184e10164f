"""Inventory JSON API.

Learn: Routes handle HTTP concerns (status codes, error responses), the
InventoryService handles business logic. Every write route ends in one
broadcast to the inventory room — that happens inside the service, after
the commit, so routes never deal with the real-time layer directly.

Endpoints (all behind the auth gate):
- GET    /api/items                    list (?search=, ?category=)
- POST   /api/items                    create
- GET    /api/items/low-stock|hazardous|reserved|available
- GET    /api/items/{id}               read one
- PUT    /api/items/{id}               partial update (PATCH too)
- DELETE /api/items/{id}               delete
- POST   /api/items/{id}/adjust        stock in/out
- GET    /api/items/{id}/transactions  one item's history (?type=)
- GET    /api/transactions             transaction log (?type=)
- GET    /api/me                       current user
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.auth.dependencies import require_user
from stockpulse.auth.sessions import Identity
from stockpulse.db.engine import get_db
from stockpulse.events.types import ALL_EVENT_TYPES
from stockpulse.schemas.inventory import (
    ItemCreate,
    ItemRead,
    ItemUpdate,
    StockAdjustment,
    TransactionRead,
)
from stockpulse.services.inventory_service import (
    DuplicateSku,
    InsufficientStock,
    InventoryService,
    ItemNotFound,
)

router = APIRouter(prefix="/api")


def _svc(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: Identity = Depends(require_user),
) -> InventoryService:
    return InventoryService(
        db,
        broadcaster=request.app.state.broadcaster,
        room=request.app.state.settings.inventory_room,
        actor=user.username,
    )


@router.get("/me")
async def me(user: Identity = Depends(require_user)):
    return {
        "user_id": user.user_id,
        "username": user.username,
        "display_name": user.name,
    }


# ─── Items ──────────────────────────────────────────────

@router.get("/items", response_model=list[ItemRead])
async def list_items(
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    svc: InventoryService = Depends(_svc),
):
    return await svc.list_items(search=search, category=category)


@router.post("/items", response_model=ItemRead, status_code=201)
async def create_item(body: ItemCreate, svc: InventoryService = Depends(_svc)):
    try:
        return await svc.create_item(body)
    except DuplicateSku as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InsufficientStock as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/items/low-stock", response_model=list[ItemRead])
async def low_stock(svc: InventoryService = Depends(_svc)):
    return await svc.low_stock()


@router.get("/items/hazardous", response_model=list[ItemRead])
async def hazardous(svc: InventoryService = Depends(_svc)):
    return await svc.hazardous()


@router.get("/items/reserved", response_model=list[ItemRead])
async def reserved(svc: InventoryService = Depends(_svc)):
    return await svc.reserved()


@router.get("/items/available", response_model=list[ItemRead])
async def available(svc: InventoryService = Depends(_svc)):
    return await svc.available()


@router.get("/items/{item_id}", response_model=ItemRead)
async def get_item(item_id: uuid.UUID, svc: InventoryService = Depends(_svc)):
    item = await svc.get_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item


@router.api_route("/items/{item_id}", methods=["PUT", "PATCH"], response_model=ItemRead)
async def update_item(
    item_id: uuid.UUID,
    body: ItemUpdate,
    svc: InventoryService = Depends(_svc),
):
    try:
        return await svc.update_item(item_id, body)
    except ItemNotFound:
        raise HTTPException(status_code=404, detail="Item not found")
    except InsufficientStock as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/items/{item_id}", status_code=204)
async def delete_item(item_id: uuid.UUID, svc: InventoryService = Depends(_svc)):
    try:
        await svc.delete_item(item_id)
    except ItemNotFound:
        raise HTTPException(status_code=404, detail="Item not found")
    return Response(status_code=204)


@router.post("/items/{item_id}/adjust", response_model=ItemRead)
async def adjust_stock(
    item_id: uuid.UUID,
    body: StockAdjustment,
    svc: InventoryService = Depends(_svc),
):
    """Move stock in (positive delta) or out (negative delta)."""
    try:
        return await svc.adjust_stock(item_id, body.delta, reason=body.reason)
    except ItemNotFound:
        raise HTTPException(status_code=404, detail="Item not found")
    except InsufficientStock as e:
        raise HTTPException(status_code=400, detail=str(e))


# ─── Transaction log ────────────────────────────────────


def _event_types(event_types: Optional[list[str]]) -> Optional[list[str]]:
    unknown = sorted(set(event_types or []) - set(ALL_EVENT_TYPES))
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown event type: {', '.join(unknown)}",
        )
    return event_types or None


@router.get("/items/{item_id}/transactions", response_model=list[TransactionRead])
async def item_transactions(
    item_id: uuid.UUID,
    event_type: Optional[list[str]] = Query(None, alias="type"),
    after_id: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    svc: InventoryService = Depends(_svc),
):
    """Audit trail for one item. Kept after the item is deleted."""
    return await svc.item_transactions(
        item_id, after_id=after_id, limit=limit, types=_event_types(event_type)
    )


@router.get("/transactions", response_model=list[TransactionRead])
async def list_transactions(
    event_type: Optional[list[str]] = Query(None, alias="type"),
    after_id: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    svc: InventoryService = Depends(_svc),
):
    return await svc.transactions(
        after_id=after_id, limit=limit, types=_event_types(event_type)
    )
