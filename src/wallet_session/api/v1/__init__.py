# src/wallet_session/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import session_router, system_router

__all__ = ["session_router", "system_router"]
