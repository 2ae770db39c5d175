"""Shared API dependencies wiring the session protocol collaborators."""

from typing import Annotated

from fastapi import Depends

from wallet_session.core.settings import settings
from wallet_session.db.session import SessionLocal
from wallet_session.services.community import CommunityConfigService
from wallet_session.services.ledger import LedgerClient
from wallet_session.services.notifier import BrevoNotifier
from wallet_session.services.oracle import SessionStateOracle
from wallet_session.services.rate_limit import SqlRateLimitStore
from wallet_session.services.relay import RelayClient
from wallet_session.services.session import SessionProtocol


class _ClientRegistry:
    """Process-wide HTTP clients shared across requests."""

    ledger: LedgerClient | None = None
    relay: RelayClient | None = None
    communities: CommunityConfigService | None = None

    @classmethod
    def get_ledger(cls) -> LedgerClient:
        if cls.ledger is None:
            cls.ledger = LedgerClient()
        return cls.ledger

    @classmethod
    def get_relay(cls) -> RelayClient:
        if cls.relay is None:
            cls.relay = RelayClient()
        return cls.relay

    @classmethod
    def get_communities(cls) -> CommunityConfigService:
        if cls.communities is None:
            cls.communities = CommunityConfigService()
        return cls.communities

    @classmethod
    async def close(cls) -> None:
        if cls.ledger is not None:
            await cls.ledger.close()
            cls.ledger = None
        if cls.relay is not None:
            await cls.relay.close()
            cls.relay = None


def get_relay_client() -> RelayClient:
    """Return the process-wide relay client."""
    return _ClientRegistry.get_relay()


def get_session_protocol() -> SessionProtocol:
    """Build a session protocol bound to the shared collaborators.

    The protocol itself is stateless, so a fresh instance per request is cheap.
    """
    return SessionProtocol(
        communities=_ClientRegistry.get_communities(),
        oracle=SessionStateOracle(_ClientRegistry.get_ledger()),
        relay=get_relay_client(),
        rate_limit_store=SqlRateLimitStore(SessionLocal),
        notifier=BrevoNotifier(),
        config=settings,
    )


async def close_clients() -> None:
    """Release shared HTTP clients on shutdown."""
    await _ClientRegistry.close()


# Type alias for the session protocol dependency
SessionProtocolDep = Annotated[SessionProtocol, Depends(get_session_protocol)]
RelayClientDep = Annotated[RelayClient, Depends(get_relay_client)]
