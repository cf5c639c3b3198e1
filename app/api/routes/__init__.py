"""API routes package."""

from fastapi import APIRouter

from app.api.routes.bills import router as bills_router
from app.api.routes.bulk import router as bulk_router
from app.api.routes.health import router as health_router

# Create API router with all sub-routers
api_router = APIRouter()

# Register all route modules
api_router.include_router(health_router)
api_router.include_router(bulk_router)
api_router.include_router(bills_router)


__all__ = [
    "api_router",
    "health_router",
    "bulk_router",
    "bills_router",
]
