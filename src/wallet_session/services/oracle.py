"""Ledger-backed view of session request state."""

from __future__ import annotations

import asyncio
import hmac
import logging

from wallet_session.core.errors import (
    ChallengeExpiredError,
    OracleUnavailableError,
    SessionExpiredError,
    SessionNotFoundError,
)
from wallet_session.core.settings import settings
from wallet_session.services.community import SessionManagerConfig
from wallet_session.services.ledger import LedgerClient, LedgerError, SessionRecord
from wallet_session.utils.hash import HashLike, to_hash_bytes

logger = logging.getLogger(__name__)


class SessionStateOracle:
    """Reads session requests from the ledger and evaluates them."""

    def __init__(self, ledger: LedgerClient, *, timeout_seconds: float | None = None) -> None:
        self._ledger = ledger
        self._timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.ledger_timeout_seconds
        )

    async def fetch_session_record(
        self,
        session_manager: SessionManagerConfig,
        provider: str,
        session_request_hash: HashLike,
    ) -> SessionRecord:
        """Fetch the ledger record for ``(provider, session_request_hash)``.

        Raises:
            SessionNotFoundError: If the ledger holds no record for the key.
            OracleUnavailableError: If the ledger read fails or times out.
        """
        request_hash = to_hash_bytes(session_request_hash, field="session request hash")
        try:
            record = await asyncio.wait_for(
                self._ledger.read_session_request(
                    session_manager.rpc_url,
                    session_manager.module_address,
                    provider,
                    request_hash,
                ),
                timeout=self._timeout_seconds,
            )
        except TimeoutError as exc:
            logger.error("Ledger read timed out for %s", request_hash.hex())
            raise OracleUnavailableError("Ledger read timed out") from exc
        except LedgerError as exc:
            logger.error("Ledger read failed for %s", request_hash.hex(), exc_info=True)
            raise OracleUnavailableError(str(exc)) from exc

        if record is None or record.is_empty:
            raise SessionNotFoundError()
        return record

    @staticmethod
    def validate_not_expired(record: SessionRecord, now: int) -> None:
        """Ensure both expiries lie strictly after ``now``.

        Raises:
            SessionExpiredError: If the session expiry has been reached.
            ChallengeExpiredError: If the challenge expiry has been reached.
        """
        if not record.session_expiry > now:
            raise SessionExpiredError()
        if not record.challenge_expiry > now:
            raise ChallengeExpiredError()

    @staticmethod
    def matches_stored_signature(record: SessionRecord, recomputed_signed_hash: bytes) -> bool:
        """Compare the stored service signature with a freshly produced one."""
        return hmac.compare_digest(record.signed_session_hash, bytes(recomputed_signed_hash))
