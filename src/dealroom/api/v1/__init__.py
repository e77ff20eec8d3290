# src/dealroom/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import admin_router, conversations_router

__all__ = [
    "admin_router",
    "conversations_router",
]
