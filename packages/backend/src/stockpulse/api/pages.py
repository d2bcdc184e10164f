"""Server-rendered pages.

Learn: `public_router` holds the landing page. Everything on `router`
sits behind the auth gate (applied in api/__init__.py), so by the time
a handler here runs, request.state.user is a real Identity.

Most pages are static shells — the browser fills them from /api and
keeps them fresh over /ws — so they share one generic template.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from stockpulse.auth.dependencies import get_current_user_optional, require_user
from stockpulse.auth.sessions import Identity
from stockpulse.db.engine import get_db
from stockpulse.db.models import InventoryItem
from stockpulse.templating import render

public_router = APIRouter()
router = APIRouter()

# path → (title, api endpoint the page reads from)
SHELL_PAGES = {
    "/add-item": ("Add Item", None),
    "/inventory-list": ("Inventory", "/api/items"),
    "/alerts": ("Alerts", "/api/items/low-stock"),
    "/edit-item": ("Edit Item", None),
    "/hazardous-materials": ("Hazardous Materials", "/api/items/hazardous"),
    "/items-available": ("Items Available", "/api/items/available"),
    "/low-stock": ("Low Stock", "/api/items/low-stock"),
    "/reserved-items": ("Reserved Items", "/api/items/reserved"),
    "/transaction-log": ("Transaction Log", "/api/transactions"),
}


@public_router.get("/", include_in_schema=False)
async def index(
    request: Request,
    user: Optional[Identity] = Depends(get_current_user_optional),
):
    if user:
        return RedirectResponse("/home", status_code=302)
    return render(request, "index.html")


@router.get("/home", include_in_schema=False)
async def home(request: Request, user: Identity = Depends(require_user)):
    return render(request, "home.html", user_name=user.name)


@router.get("/profile", include_in_schema=False)
async def profile(request: Request):
    return render(request, "profile.html")


@router.get("/settings", include_in_schema=False)
async def settings_page(request: Request):
    return render(request, "settings.html")


@router.get("/inventory", include_in_schema=False)
async def inventory_index():
    return RedirectResponse("/inventory-list", status_code=302)


@router.get("/inventory/{item_id}", include_in_schema=False)
async def inventory_item(
    request: Request,
    item_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    item = await db.get(InventoryItem, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    return render(request, "item.html", item=item)


def _shell_page(title: str, endpoint: Optional[str]):
    async def page(request: Request):
        return render(request, "page.html", title=title, endpoint=endpoint)
    return page


for _path, (_title, _endpoint) in SHELL_PAGES.items():
    router.add_api_route(
        _path,
        _shell_page(_title, _endpoint),
        methods=["GET"],
        include_in_schema=False,
        name=_path.strip("/").replace("-", "_"),
    )
