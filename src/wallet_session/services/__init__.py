# src/wallet_session/services/__init__.py
"""Business logic services for the wallet session service."""

from .community import CommunityConfigService
from .crypto import ServiceSigner
from .ledger import LedgerClient
from .notifier import BrevoNotifier
from .oracle import SessionStateOracle
from .rate_limit import SqlRateLimitStore
from .relay import RelayClient
from .session import SessionProtocol

__all__ = [
    "BrevoNotifier",
    "CommunityConfigService",
    "LedgerClient",
    "RelayClient",
    "ServiceSigner",
    "SessionProtocol",
    "SessionStateOracle",
    "SqlRateLimitStore",
]
