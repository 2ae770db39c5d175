"""Relay client that turns signed calls into ledger transactions.

The relay is an opaque collaborator: it receives the target contract, the
account the call is made on behalf of and the ABI-encoded call data, and
returns the hash of the submitted transaction.

Submissions are never retried here. A ``request`` or ``confirm`` call is not
safe to replay blindly, so failures surface to the caller as ``RelayError``.
Repeated relay outages trip a breaker so callers fail fast instead of piling
up on a dead endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx
from eth_abi import encode

from wallet_session.core.errors import ConfigurationError, RelayError
from wallet_session.core.settings import Settings, settings
from wallet_session.services.crypto import ServiceSigner
from wallet_session.utils.hash import keccak256, normalize_address, to_hex

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({200, 201, 202})
SERVER_ERROR_STATUS = 500


class BreakerState(Enum):
    """Relay availability as seen by the breaker."""

    CLOSED = "closed"
    OPEN = "open"
    TRIAL = "trial"


@dataclass
class SubmissionStats:
    """Running totals of relay submissions."""

    submitted: int = 0
    accepted: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    failures: Counter[str] = field(default_factory=Counter)

    def observe(self, elapsed: float, failure: str | None = None) -> None:
        self.submitted += 1
        self.elapsed_seconds += elapsed
        if failure is None:
            self.accepted += 1
        else:
            self.failed += 1
            self.failures[failure] += 1

    @property
    def mean_latency(self) -> float:
        return self.elapsed_seconds / self.submitted if self.submitted else 0.0


@dataclass
class RelayBreaker:
    """Stops submissions after consecutive relay outages.

    After ``cooldown_seconds`` the breaker lets trial calls through again;
    ``trial_successes`` accepted trials close it, one failed trial reopens it.
    """

    max_failures: int = 5
    cooldown_seconds: float = 60.0
    trial_successes: int = 3

    state: BreakerState = BreakerState.CLOSED
    consecutive_failures: int = 0
    trial_count: int = 0
    opened_at: float = 0.0

    def allows_submission(self) -> bool:
        if self.state is BreakerState.OPEN:
            if time.monotonic() - self.opened_at < self.cooldown_seconds:
                return False
            self.state = BreakerState.TRIAL
            self.trial_count = 0
        return True

    def on_success(self) -> None:
        self.consecutive_failures = 0
        if self.state is BreakerState.TRIAL:
            self.trial_count += 1
            if self.trial_count >= self.trial_successes:
                self.state = BreakerState.CLOSED

    def on_failure(self) -> None:
        self.consecutive_failures += 1
        if self.state is BreakerState.TRIAL or self.consecutive_failures >= self.max_failures:
            self.state = BreakerState.OPEN
            self.opened_at = time.monotonic()


def submission_digest(target: str, on_behalf_of: str, call_data: bytes) -> bytes:
    """Hash ``(address target, address sender, bytes data)`` for relay auth."""
    return keccak256(
        encode(
            ["address", "address", "bytes"],
            [normalize_address(target), normalize_address(on_behalf_of), call_data],
        )
    )


class RelayClient:
    """Submits provider-signed calls to the transaction relay over HTTP."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = config or settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None
        self._http_lock = asyncio.Lock()
        self._breaker = RelayBreaker()
        self._stats = SubmissionStats()

    async def _http_client(self) -> httpx.AsyncClient:
        if not self._settings.relay_url:
            raise ConfigurationError("RELAY_URL is not set")

        async with self._http_lock:
            if self._http is None:
                self._http = httpx.AsyncClient(
                    base_url=self._settings.relay_url,
                    timeout=httpx.Timeout(self._settings.relay_timeout_seconds),
                    transport=self._transport,
                )
        return self._http

    def _headers(self, digest: bytes) -> dict[str, str]:
        headers = {"Idempotency-Key": digest.hex()}
        if self._settings.relay_api_key:
            headers["Authorization"] = f"Bearer {self._settings.relay_api_key}"
        return headers

    async def _post(self, payload: dict[str, Any], digest: bytes) -> str:
        http = await self._http_client()
        try:
            response = await http.post("/submit", json=payload, headers=self._headers(digest))
        except httpx.HTTPError as exc:
            self._breaker.on_failure()
            logger.error("Relay submission failed", exc_info=True)
            raise _Failure("network_error", f"Relay request failed: {exc}") from exc

        if response.status_code >= SERVER_ERROR_STATUS:
            self._breaker.on_failure()
            raise _Failure(f"http_{response.status_code}", f"Relay responded with {response.status_code}")
        self._breaker.on_success()
        if response.status_code not in ACCEPTED_STATUSES:
            raise _Failure(f"http_{response.status_code}", f"Relay rejected call ({response.status_code})")

        try:
            body = response.json()
        except ValueError as exc:
            raise _Failure("invalid_body", "Relay returned a non-JSON body") from exc
        tx_hash = body.get("tx_hash") if isinstance(body, dict) else None
        if not tx_hash:
            raise _Failure("missing_tx_hash", "Relay response did not include a transaction hash")
        return str(tx_hash)

    async def submit(
        self,
        signer: ServiceSigner,
        target: str,
        on_behalf_of: str,
        call_data: bytes,
    ) -> str:
        """Submit a signed call and return the resulting transaction hash.

        Args:
            signer: Provider signing identity authorizing the call.
            target: Contract the call is addressed to.
            on_behalf_of: Account the call is executed from.
            call_data: ABI-encoded call data.

        Returns:
            The transaction hash reported by the relay

        Raises:
            RelayError: If the relay is unavailable or rejects the call.
            ConfigurationError: If no relay URL is configured.
        """
        if not self._breaker.allows_submission():
            raise RelayError("Relay circuit breaker is open")

        digest = submission_digest(target, on_behalf_of, call_data)
        payload: dict[str, Any] = {
            "target": normalize_address(target),
            "sender": normalize_address(on_behalf_of),
            "data": to_hex(call_data),
            "signer": signer.address,
            "signature": to_hex(signer.sign_hash(digest)),
        }

        started = time.monotonic()
        try:
            tx_hash = await self._post(payload, digest)
        except _Failure as failure:
            self._stats.observe(time.monotonic() - started, failure.reason)
            raise RelayError(failure.detail) from failure
        self._stats.observe(time.monotonic() - started)

        logger.info("Relay accepted call to %s (tx %s)", payload["target"], tx_hash)
        return tx_hash

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot of submission counters and breaker state."""
        return {
            "request_count": self._stats.submitted,
            "success_count": self._stats.accepted,
            "error_count": self._stats.failed,
            "average_response_time": self._stats.mean_latency,
            "error_counts_by_type": dict(self._stats.failures),
            "circuit_state": self._breaker.state.value,
        }

    async def close(self) -> None:
        """Close the pooled HTTP client."""
        async with self._http_lock:
            if self._http is not None:
                await self._http.aclose()
                self._http = None


class _Failure(Exception):
    """Internal carrier for a classified submission failure."""

    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
