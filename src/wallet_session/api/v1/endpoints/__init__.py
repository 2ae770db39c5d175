# src/wallet_session/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .session import router as session_router
from .system import router as system_router

__all__ = ["session_router", "system_router"]
