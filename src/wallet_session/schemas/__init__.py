# src/wallet_session/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .session import (
    SessionConfirmBody,
    SessionConfirmResponse,
    SessionRequestBody,
    SessionRequestResponse,
)

__all__ = [
    "SessionConfirmBody", "SessionConfirmResponse",
    "SessionRequestBody", "SessionRequestResponse",
]
