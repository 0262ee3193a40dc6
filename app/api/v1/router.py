"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from app.api.v1 import bookings, health, scheduling

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Slot search, placement, visit commit, worker capabilities
api_router.include_router(
    scheduling.router,
    prefix="/sites/{site_id}",
    tags=["scheduling"],
)

# Visit groups and cascade cancellation
api_router.include_router(
    bookings.router,
    prefix="/sites/{site_id}/bookings",
    tags=["bookings"],
)
