# src/dealroom/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .conversations import router as conversations_router

__all__ = [
    "admin_router",
    "conversations_router",
]
