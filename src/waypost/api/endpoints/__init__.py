# src/waypost/api/endpoints/__init__.py
"""API endpoint modules."""

from .system import router as system_router
from .users import router as users_router

__all__ = ["system_router", "users_router"]
