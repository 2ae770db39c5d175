"""Session Manager module ABI and read-only JSON-RPC client.

Queries are plain ``eth_call`` requests against the community's primary RPC
endpoint. Call data and return data use the Solidity ABI. The ``request`` and
``confirm`` encoders build the call data handed to the relay.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from wallet_session.core.settings import settings
from wallet_session.utils.hash import normalize_address, to_hash_bytes

logger = logging.getLogger(__name__)

SESSION_REQUESTS_SIGNATURE = "sessionRequests(address,bytes32)"
SESSION_REQUEST_RETURN_TYPES = ("uint48", "uint48", "bytes", "bytes", "bool")
REQUEST_SIGNATURE = "request(bytes32,bytes32,bytes,bytes,uint48,uint48)"
REQUEST_ARG_TYPES = ("bytes32", "bytes32", "bytes", "bytes", "uint48", "uint48")
CONFIRM_SIGNATURE = "confirm(bytes32,bytes32,bytes)"
CONFIRM_ARG_TYPES = ("bytes32", "bytes32", "bytes")


class LedgerError(RuntimeError):
    """Raised when the RPC endpoint cannot answer a read."""


@dataclass(frozen=True)
class SessionRecord:
    """Ledger-held state of a session request."""

    provider: str
    session_request_hash: bytes
    session_expiry: int
    challenge_expiry: int
    signed_session_hash: bytes
    signed_session_request_hash: bytes
    confirmed: bool

    @property
    def is_empty(self) -> bool:
        """True when every field holds the mapping's default value."""
        return (
            self.session_expiry == 0
            and self.challenge_expiry == 0
            and not self.signed_session_hash
            and not self.signed_session_request_hash
            and not self.confirmed
        )


def function_selector(signature: str) -> bytes:
    """Return the 4-byte selector for a Solidity function signature."""
    return keccak(text=signature)[:4]


def encode_session_requests_call(provider: str, session_request_hash: bytes) -> bytes:
    """Encode ``sessionRequests(provider, sessionRequestHash)`` call data."""
    return function_selector(SESSION_REQUESTS_SIGNATURE) + encode(
        ["address", "bytes32"],
        [normalize_address(provider, field="provider address"), session_request_hash],
    )


def encode_request_call(
    salt: bytes,
    session_request_hash: bytes,
    signed_session_request_hash: bytes,
    signed_session_hash: bytes,
    session_expiry: int,
    challenge_expiry: int,
) -> bytes:
    """Encode the module's ``request`` call."""
    return function_selector(REQUEST_SIGNATURE) + encode(
        list(REQUEST_ARG_TYPES),
        [
            salt,
            session_request_hash,
            signed_session_request_hash,
            signed_session_hash,
            session_expiry,
            challenge_expiry,
        ],
    )


def encode_confirm_call(
    session_request_hash: bytes,
    session_hash: bytes,
    signed_session_hash: bytes,
) -> bytes:
    """Encode the module's ``confirm`` call."""
    return function_selector(CONFIRM_SIGNATURE) + encode(
        list(CONFIRM_ARG_TYPES),
        [session_request_hash, session_hash, signed_session_hash],
    )


def decode_session_request(
    provider: str,
    session_request_hash: bytes,
    data: bytes,
) -> SessionRecord:
    """Decode the ``sessionRequests`` return tuple.

    Raises:
        LedgerError: If the return data does not match the expected layout.
    """
    try:
        expiry, challenge_expiry, signed_hash, signed_request_hash, confirmed = decode(
            list(SESSION_REQUEST_RETURN_TYPES), data
        )
    except (DecodingError, ValueError) as err:
        raise LedgerError(f"Malformed sessionRequests return data: {err}") from err
    return SessionRecord(
        provider=provider,
        session_request_hash=session_request_hash,
        session_expiry=int(expiry),
        challenge_expiry=int(challenge_expiry),
        signed_session_hash=bytes(signed_hash),
        signed_session_request_hash=bytes(signed_request_hash),
        confirmed=bool(confirmed),
    )


class LedgerClient:
    """HTTP JSON-RPC client used for ledger reads."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.ledger_timeout_seconds
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self._timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def eth_call(self, rpc_url: str, to: str, data: bytes) -> bytes:
        """Execute ``eth_call`` against the latest block.

        Returns:
            Raw return data (empty if the call produced none)

        Raises:
            LedgerError: On transport failures or JSON-RPC errors.
        """
        client = await self._ensure_client()
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": "eth_call",
            "params": [{"to": to, "data": "0x" + data.hex()}, "latest"],
        }
        try:
            response = await client.post(rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise LedgerError(f"RPC request failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerError("RPC returned a non-JSON body") from exc

        if body.get("error"):
            raise LedgerError(f"RPC error: {body['error']}")
        result = body.get("result") or "0x"
        try:
            return bytes.fromhex(result[2:] if result.startswith("0x") else result)
        except (AttributeError, ValueError) as exc:
            raise LedgerError("RPC returned malformed result data") from exc

    async def read_session_request(
        self,
        rpc_url: str,
        module_address: str,
        provider: str,
        session_request_hash: bytes | str,
    ) -> SessionRecord | None:
        """Read the session request stored for ``(provider, session_request_hash)``.

        Returns:
            The decoded record, or None if the call returned no data
        """
        request_hash = to_hash_bytes(session_request_hash, field="session request hash")
        data = encode_session_requests_call(provider, request_hash)
        result = await self.eth_call(rpc_url, module_address, data)
        if not result:
            logger.debug("sessionRequests returned no data for %s", request_hash.hex())
            return None
        return decode_session_request(provider, request_hash, result)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
