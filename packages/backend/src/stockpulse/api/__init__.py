"""Route aggregation.

All routers registered here get mounted in main.py.

Learn: The auth gate is applied at the include_router level using
FastAPI's dependencies parameter. This protects every route in a router
without touching individual handlers. Health, auth, and the landing page
are open.
"""

from fastapi import APIRouter, Depends

from stockpulse.api.auth import router as auth_router
from stockpulse.api.health import router as health_router
from stockpulse.api.items import router as items_router
from stockpulse.api.pages import public_router as public_pages_router
from stockpulse.api.pages import router as pages_router
from stockpulse.auth.dependencies import require_user

# All protected routers go through the auth gate
_auth = [Depends(require_user)]

api_router = APIRouter()

# Open routes — no session required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(public_pages_router, tags=["pages"])

# Protected routes — redirect to login without a live session
api_router.include_router(pages_router, tags=["pages"], dependencies=_auth)
api_router.include_router(items_router, tags=["items"], dependencies=_auth)
