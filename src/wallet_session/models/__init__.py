# src/wallet_session/models/__init__.py
"""SQLAlchemy models for the wallet session service."""

from .session_request import SessionRequestLog

__all__ = ["SessionRequestLog"]
