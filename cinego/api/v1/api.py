"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from cinego.api.v1.endpoints import (
    admin,
    bookings,
    health,
    shows,
    users,
    webhooks
)

api_router = APIRouter()

# Include all routers
api_router.include_router(shows.router, prefix="/shows", tags=["shows"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
