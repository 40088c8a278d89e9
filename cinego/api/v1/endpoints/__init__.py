"""
API endpoints module
"""

from . import admin, bookings, health, shows, users, webhooks

__all__ = [
    "admin",
    "bookings",
    "health",
    "shows",
    "users",
    "webhooks"
]
