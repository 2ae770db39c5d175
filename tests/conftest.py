# tests/conftest.py
from __future__ import annotations

import itertools
import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest
from eth_abi import decode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

from wallet_session.core.settings import Settings
from wallet_session.db.session import Base
from wallet_session.services.challenge import Channel
from wallet_session.services.community import CommunityConfigService
from wallet_session.services.crypto import ServiceSigner
from wallet_session.services.ledger import (
    CONFIRM_ARG_TYPES,
    CONFIRM_SIGNATURE,
    REQUEST_ARG_TYPES,
    REQUEST_SIGNATURE,
    SessionRecord,
    function_selector,
)
from wallet_session.services.oracle import SessionStateOracle
from wallet_session.services.rate_limit import SqlRateLimitStore
from wallet_session.services.session import SessionProtocol

OWNER_KEY = "0x" + "11" * 32
SERVICE_KEY = "0x" + "22" * 32
STRANGER_KEY = "0x" + "33" * 32
PROVIDER_ADDRESS = to_checksum_address("0x" + "ab" * 20)
MODULE_ADDRESS = to_checksum_address("0x" + "cd" * 20)
ALIAS = "test.community"
RPC_URL = "https://rpc.test"
NOW = 1_700_000_000


def community_config_payload(
    alias: str = ALIAS,
    provider: str = PROVIDER_ADDRESS,
    module: str = MODULE_ADDRESS,
) -> dict[str, Any]:
    """Return a published community config with one session manager."""
    return {
        "community": {
            "alias": alias,
            "name": "Test Community",
            "primary_session_manager": {"address": module, "chain_id": 100},
        },
        "sessions": {
            f"100:{module}": {
                "chain_id": 100,
                "module_address": module,
                "provider_address": provider,
                "factory_address": to_checksum_address("0x" + "ef" * 20),
            }
        },
        "chains": {"100": {"id": 100, "node": {"url": RPC_URL}}},
    }


def sign_hash(account: LocalAccount, message_hash: bytes) -> str:
    """Sign a 32-byte hash as a personal message and return 0x hex."""
    signed = account.sign_message(encode_defunct(primitive=message_hash))
    return "0x" + bytes(signed.signature).hex()


class FakeClock:
    """Settable clock returning unix seconds."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class FakeLedger:
    """In-memory Session Manager module.

    Acts as both the relay (decoding submitted call data) and the read-only
    ledger client, so protocol tests exercise the real ABI encoding.
    """

    def __init__(self) -> None:
        self.records: dict[tuple[str, bytes], SessionRecord] = {}
        self.submissions: list[dict[str, Any]] = []
        self.fail_submit: Exception | None = None
        self._tx_ids = itertools.count(1)

    async def submit(
        self, signer: ServiceSigner, target: str, on_behalf_of: str, call_data: bytes
    ) -> str:
        if self.fail_submit is not None:
            raise self.fail_submit
        selector, body = call_data[:4], call_data[4:]
        key_provider = on_behalf_of.lower()
        if selector == function_selector(REQUEST_SIGNATURE):
            salt, request_hash, signed_request, signed_session, expiry, challenge_expiry = decode(
                list(REQUEST_ARG_TYPES), body
            )
            self.records[(key_provider, request_hash)] = SessionRecord(
                provider=on_behalf_of,
                session_request_hash=request_hash,
                session_expiry=expiry,
                challenge_expiry=challenge_expiry,
                signed_session_hash=signed_session,
                signed_session_request_hash=signed_request,
                confirmed=False,
            )
            method = "request"
        elif selector == function_selector(CONFIRM_SIGNATURE):
            request_hash, _session_hash, _signed = decode(list(CONFIRM_ARG_TYPES), body)
            record = self.records[(key_provider, request_hash)]
            self.records[(key_provider, request_hash)] = SessionRecord(
                provider=record.provider,
                session_request_hash=record.session_request_hash,
                session_expiry=record.session_expiry,
                challenge_expiry=record.challenge_expiry,
                signed_session_hash=record.signed_session_hash,
                signed_session_request_hash=record.signed_session_request_hash,
                confirmed=True,
            )
            method = "confirm"
        else:  # pragma: no cover - unexpected call data
            raise AssertionError("unknown selector")
        tx_hash = "0x" + f"{next(self._tx_ids):064x}"
        self.submissions.append(
            {"method": method, "target": target, "sender": on_behalf_of, "tx_hash": tx_hash}
        )
        return tx_hash

    async def read_session_request(
        self, rpc_url: str, module_address: str, provider: str, session_request_hash: bytes
    ) -> SessionRecord | None:
        return self.records.get((provider.lower(), bytes(session_request_hash)))


class FakeNotifier:
    """Collects delivered challenges instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Channel, int]] = []
        self.error: Exception | None = None

    async def send_challenge(self, destination: str, channel: Channel, challenge: int) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((destination, channel, challenge))


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def rate_limit_store(session_factory: sessionmaker[Session]) -> SqlRateLimitStore:
    return SqlRateLimitStore(session_factory)


@pytest.fixture()
def test_settings() -> Settings:
    """Provide settings with a service key and tight throttling windows."""
    return Settings(
        provider_private_key=SERVICE_KEY,
        rate_limit_immediate=2,
        rate_limit_recent=5,
        rate_limit_daily=20,
        challenge_ttl_seconds=120,
        otp_digits=6,
        notifier_timeout_seconds=1.0,
        ledger_timeout_seconds=1.0,
    )


@pytest.fixture()
def owner() -> LocalAccount:
    return Account.from_key(OWNER_KEY)


@pytest.fixture()
def stranger() -> LocalAccount:
    return Account.from_key(STRANGER_KEY)


@pytest.fixture()
def service_signer() -> ServiceSigner:
    return ServiceSigner.from_private_key(SERVICE_KEY)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def communities() -> CommunityConfigService:
    return CommunityConfigService(configs=[community_config_payload()])


@pytest.fixture()
def protocol(
    test_settings: Settings,
    communities: CommunityConfigService,
    fake_ledger: FakeLedger,
    notifier: FakeNotifier,
    rate_limit_store: SqlRateLimitStore,
    service_signer: ServiceSigner,
    clock: FakeClock,
) -> Iterator[SessionProtocol]:
    yield SessionProtocol(
        communities=communities,
        oracle=SessionStateOracle(fake_ledger, timeout_seconds=1.0),  # type: ignore[arg-type]
        relay=fake_ledger,
        rate_limit_store=rate_limit_store,
        notifier=notifier,
        signer=service_signer,
        config=test_settings,
        clock=clock,
    )


@pytest.fixture()
def app(protocol: SessionProtocol) -> Iterator[FastAPI]:
    """Return the application wired to the in-memory protocol."""
    from wallet_session.api.v1.dependencies import get_session_protocol
    from wallet_session.main import app as application

    application.dependency_overrides[get_session_protocol] = lambda: protocol
    try:
        yield application
    finally:
        application.dependency_overrides.pop(get_session_protocol, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
