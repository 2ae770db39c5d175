"""Session request/confirm protocol.

A session moves through ``Requested -> Challenged -> Confirmed`` on the
ledger, or expires. This service holds no session state of its own: every
call derives the hash chain from its inputs, checks signatures locally and
reads or writes the ledger through the oracle and relay collaborators.

Checks run cheapest first: field validation, provider match, signature,
then anything that needs I/O.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from wallet_session.core.errors import (
    HashMismatchError,
    InvalidConfirmationError,
    InvalidProviderError,
    InvalidSignatureError,
    SessionAlreadyConfirmedError,
    SessionError,
    ValidationError,
)
from wallet_session.core.security import decode_signature, verify_signature
from wallet_session.core.settings import Settings, settings
from wallet_session.services.challenge import (
    SessionType,
    challenge_strategy_for,
    normalize_source,
)
from wallet_session.services.community import CommunityConfig, CommunityConfigService
from wallet_session.services.crypto import ServiceSigner
from wallet_session.services.ledger import encode_confirm_call, encode_request_call
from wallet_session.services.notifier import ChallengeNotifier
from wallet_session.services.oracle import SessionStateOracle
from wallet_session.services.rate_limit import RateLimitStore, enforce_rate_limit
from wallet_session.utils.hash import (
    UINT48_MAX,
    HashLike,
    derive_salt,
    derive_session_hash,
    derive_session_request_hash,
    normalize_address,
    to_hash_bytes,
    to_hex,
)

logger = logging.getLogger(__name__)


class TransactionRelay(Protocol):
    """Submits signed calls to the ledger."""

    async def submit(
        self, signer: ServiceSigner, target: str, on_behalf_of: str, call_data: bytes
    ) -> str: ...


@dataclass(frozen=True)
class SessionRequestResult:
    """Outcome of a submitted session request."""

    tx_hash: str
    salt: bytes
    session_request_hash: bytes
    challenge_expiry: int
    # Only set for passkey sessions, where the caller signs the message locally.
    challenge: str | None = None


@dataclass(frozen=True)
class SessionConfirmResult:
    """Outcome of a submitted session confirmation."""

    tx_hash: str
    session_request_hash: bytes
    session_hash: bytes


def _parse_session_type(value: SessionType | str) -> SessionType:
    try:
        return SessionType(value)
    except ValueError as err:
        raise ValidationError(f"Invalid session type: {value!r}") from err


def _parse_signature(value: bytes | str, error: type[SessionError]) -> bytes:
    try:
        return decode_signature(value)
    except (ValueError, TypeError) as err:
        raise error() from err


class SessionProtocol:
    """Orchestrates session requests and confirmations."""

    def __init__(
        self,
        *,
        communities: CommunityConfigService,
        oracle: SessionStateOracle,
        relay: TransactionRelay,
        rate_limit_store: RateLimitStore | None = None,
        notifier: ChallengeNotifier | None = None,
        signer: ServiceSigner | None = None,
        config: Settings | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._communities = communities
        self._oracle = oracle
        self._relay = relay
        self._rate_limit_store = rate_limit_store
        self._notifier = notifier
        self._signer = signer
        self._settings = config or settings
        self._clock = clock or (lambda: int(time.time()))

    def _resolve_signer(self) -> ServiceSigner:
        if self._signer is None:
            self._signer = ServiceSigner.from_settings(self._settings)
        return self._signer

    @staticmethod
    def _check_provider(community: CommunityConfig, provider: str) -> str:
        provider_addr = normalize_address(provider, field="provider address")
        if provider_addr != community.session_manager.provider_address:
            logger.warning("Rejected provider %s for alias %s", provider_addr, community.alias)
            raise InvalidProviderError()
        return provider_addr

    async def request(
        self,
        alias: str,
        provider: str,
        owner: str,
        source: str,
        session_type: SessionType | str,
        expiry: int,
        owner_signature: bytes | str,
        *,
        context: str | None = None,
    ) -> SessionRequestResult:
        """Request a session for ``owner`` backed by an identity proof.

        Args:
            alias: Community alias whose session manager is used.
            provider: Session provider address claimed by the caller.
            owner: Session owner address.
            source: Email address, phone number or passkey public key.
            session_type: Kind of identity proof.
            expiry: Requested session expiry (unix seconds).
            owner_signature: Owner's signature over the session request hash.
            context: Optional origin shown in passkey connection messages.

        Returns:
            The relay transaction hash and derived identifiers; passkey
            requests also carry the connection message to sign.
        """
        kind = _parse_session_type(session_type)
        if not isinstance(source, str) or not source.strip():
            raise ValidationError("source is required")
        if isinstance(expiry, bool) or not isinstance(expiry, int):
            raise ValidationError("expiry must be an integer")
        normalized_source = normalize_source(source, kind)
        owner_addr = normalize_address(owner, field="owner address")

        signer = self._resolve_signer()
        now = self._clock()
        if not now < expiry <= UINT48_MAX:
            raise ValidationError("expiry must be in the future")

        community = await self._communities.get_config(alias)
        provider_addr = self._check_provider(community, provider)

        salt = derive_salt(normalized_source, kind.value)
        session_request_hash = derive_session_request_hash(provider_addr, owner_addr, salt, expiry)
        signature = _parse_signature(owner_signature, InvalidSignatureError)
        if not verify_signature(session_request_hash, signature, owner_addr):
            logger.warning("Invalid session request signature for owner %s", owner_addr)
            raise InvalidSignatureError()

        if self._rate_limit_store is not None:
            enforce_rate_limit(
                self._rate_limit_store,
                to_hex(salt),
                community.alias,
                self._settings.rate_limit_windows,
                now=now,
            )

        strategy = challenge_strategy_for(kind, digits=self._settings.otp_digits)
        challenge = strategy.issue(owner_addr, expiry, context)
        session_hash = derive_session_hash(session_request_hash, challenge)
        signed_session_hash = signer.sign_hash(session_hash)
        challenge_expiry = now + self._settings.challenge_ttl_seconds

        call_data = encode_request_call(
            salt,
            session_request_hash,
            signature,
            signed_session_hash,
            expiry,
            challenge_expiry,
        )
        tx_hash = await self._relay.submit(
            signer,
            community.session_manager.module_address,
            provider_addr,
            call_data,
        )
        logger.info("Session request %s submitted (tx %s)", to_hex(session_request_hash), tx_hash)

        returned_challenge: str | None = None
        if strategy.channel is not None and isinstance(challenge, int):
            await self._deliver(normalized_source, strategy.channel, challenge)
        else:
            returned_challenge = str(challenge)

        return SessionRequestResult(
            tx_hash=tx_hash,
            salt=salt,
            session_request_hash=session_request_hash,
            challenge_expiry=challenge_expiry,
            challenge=returned_challenge,
        )

    async def _deliver(self, destination: str, channel: str, challenge: int) -> None:
        if self._notifier is None:
            logger.warning("No notifier configured; %s challenge not delivered", channel)
            return
        try:
            await asyncio.wait_for(
                self._notifier.send_challenge(destination, channel, challenge),  # type: ignore[arg-type]
                timeout=self._settings.notifier_timeout_seconds,
            )
        except (SessionError, TimeoutError):
            # The session is still confirmable; delivery is best effort.
            logger.warning("Failed to deliver %s challenge", channel, exc_info=True)

    async def confirm(
        self,
        alias: str,
        provider: str,
        owner: str,
        session_request_hash: HashLike,
        session_hash: HashLike,
        owner_signed_session_hash: bytes | str,
    ) -> SessionConfirmResult:
        """Confirm a previously requested session.

        Args:
            alias: Community alias whose session manager is used.
            provider: Session provider address claimed by the caller.
            owner: Session owner address.
            session_request_hash: Hash identifying the session request.
            session_hash: Hash of the session request hash and the challenge.
            owner_signed_session_hash: Owner's signature over ``session_hash``.

        Returns:
            The relay transaction hash of the confirmation.
        """
        request_hash = to_hash_bytes(session_request_hash, field="session request hash")
        hash_bytes = to_hash_bytes(session_hash, field="session hash")
        owner_addr = normalize_address(owner, field="owner address")

        signer = self._resolve_signer()
        community = await self._communities.get_config(alias)
        provider_addr = self._check_provider(community, provider)

        signature = _parse_signature(owner_signed_session_hash, InvalidConfirmationError)
        if not verify_signature(hash_bytes, signature, owner_addr):
            logger.warning("Invalid session confirmation signature for owner %s", owner_addr)
            raise InvalidConfirmationError()

        record = await self._oracle.fetch_session_record(
            community.session_manager, provider_addr, request_hash
        )
        if record.confirmed:
            raise SessionAlreadyConfirmedError()
        self._oracle.validate_not_expired(record, self._clock())

        if not self._oracle.matches_stored_signature(record, signer.sign_hash(hash_bytes)):
            logger.warning("Session hash mismatch for request %s", to_hex(request_hash))
            raise HashMismatchError()

        tx_hash = await self._relay.submit(
            signer,
            community.session_manager.module_address,
            provider_addr,
            encode_confirm_call(request_hash, hash_bytes, signature),
        )
        logger.info("Session confirm %s submitted (tx %s)", to_hex(request_hash), tx_hash)
        return SessionConfirmResult(
            tx_hash=tx_hash,
            session_request_hash=request_hash,
            session_hash=hash_bytes,
        )
