"""Tests for the salt / session request hash / session hash chain."""

import pytest
from eth_utils import keccak

from tests.conftest import MODULE_ADDRESS, PROVIDER_ADDRESS
from wallet_session.core.errors import EncodingError, ValidationError
from wallet_session.utils.hash import (
    UINT48_MAX,
    derive_salt,
    derive_session_hash,
    derive_session_request_hash,
    keccak256,
    normalize_address,
    to_hash_bytes,
    to_hex,
)

OWNER = MODULE_ADDRESS
EXPIRY = 1_700_003_600


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def _address_word(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address[2:])


def test_keccak256_of_empty_input() -> None:
    """Keccak-256 (not SHA3-256) of the empty string."""
    assert keccak256(b"").hex() == (
        "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
    )


def test_derive_salt_hashes_source_and_type() -> None:
    salt = derive_salt("alice@example.com", "email")
    assert salt == keccak(b"alice@example.com:email")
    assert len(salt) == 32
    assert derive_salt("alice@example.com", "sms") != salt


def test_session_request_hash_matches_hand_encoded_words() -> None:
    """The request hash is keccak over four left-padded 32-byte words."""
    salt = derive_salt("alice@example.com", "email")
    expected = keccak(
        _address_word(PROVIDER_ADDRESS) + _address_word(OWNER) + salt + _word(EXPIRY)
    )

    assert derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, EXPIRY) == expected


def test_hash_chain_matches_known_vectors() -> None:
    """Pinned digests shared with the on-chain module."""
    salt = derive_salt("alice@example.com", "email")
    request_hash = derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, EXPIRY)

    assert salt.hex() == "aeb968a0dd4d3a79ac8aa5b46257e6d80fa68fe75425c2d222fc8a3c073add6f"
    assert request_hash.hex() == (
        "3f44c608f3ef137ed45dd49c27165ee521a74674980e17d4e873e853383de227"
    )
    assert derive_session_hash(request_hash, 123456).hex() == (
        "3cf6199648ac3af34a6684ce7b51d432527777895b727b3273ab0f4765832698"
    )


def test_session_request_hash_is_deterministic_and_case_insensitive() -> None:
    salt = derive_salt("alice@example.com", "email")
    first = derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, EXPIRY)
    second = derive_session_request_hash(
        PROVIDER_ADDRESS.lower(), OWNER.lower(), to_hex(salt), EXPIRY
    )
    assert first == second


def test_session_request_hash_changes_with_each_input() -> None:
    salt = derive_salt("alice@example.com", "email")
    base = derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, EXPIRY)

    assert derive_session_request_hash(OWNER, PROVIDER_ADDRESS, salt, EXPIRY) != base
    assert derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, EXPIRY + 1) != base
    other_salt = derive_salt("bob@example.com", "email")
    assert derive_session_request_hash(PROVIDER_ADDRESS, OWNER, other_salt, EXPIRY) != base


def test_numeric_session_hash_matches_hand_encoded_words() -> None:
    request_hash = keccak(b"request")
    expected = keccak(request_hash + _word(123456))

    assert derive_session_hash(request_hash, 123456) == expected


def test_distinct_challenges_give_distinct_session_hashes() -> None:
    request_hash = keccak(b"request")
    assert derive_session_hash(request_hash, 123456) != derive_session_hash(request_hash, 654321)
    assert derive_session_hash(request_hash, "message a") != derive_session_hash(
        request_hash, "message b"
    )


def test_passkey_session_hash_uses_dynamic_string_encoding() -> None:
    request_hash = keccak(b"request")
    message = "hello"
    expected = keccak(
        request_hash
        + _word(64)
        + _word(len(message))
        + message.encode().ljust(32, b"\x00")
    )

    assert derive_session_hash(request_hash, message) == expected


@pytest.mark.parametrize("expiry", [-1, UINT48_MAX + 1])
def test_session_request_hash_rejects_out_of_range_expiry(expiry: int) -> None:
    salt = derive_salt("alice@example.com", "email")
    with pytest.raises(EncodingError):
        derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, expiry)


def test_session_request_hash_accepts_uint48_max() -> None:
    salt = derive_salt("alice@example.com", "email")
    assert len(derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, UINT48_MAX)) == 32


def test_session_request_hash_rejects_bool_expiry() -> None:
    salt = derive_salt("alice@example.com", "email")
    with pytest.raises(EncodingError):
        derive_session_request_hash(PROVIDER_ADDRESS, OWNER, salt, True)  # type: ignore[arg-type]


@pytest.mark.parametrize("address", ["", "0x1234", "not-an-address", "0x" + "zz" * 20])
def test_malformed_addresses_are_rejected(address: str) -> None:
    salt = derive_salt("alice@example.com", "email")
    with pytest.raises(EncodingError):
        derive_session_request_hash(address, OWNER, salt, EXPIRY)


def test_session_hash_rejects_negative_and_oversized_challenges() -> None:
    request_hash = keccak(b"request")
    with pytest.raises(EncodingError):
        derive_session_hash(request_hash, -1)
    with pytest.raises(EncodingError):
        derive_session_hash(request_hash, 2**256)
    with pytest.raises(EncodingError):
        derive_session_hash(request_hash, 1.5)  # type: ignore[arg-type]


def test_to_hash_bytes_requires_exactly_32_bytes() -> None:
    digest = keccak(b"x")
    assert to_hash_bytes(to_hex(digest)) == digest
    assert to_hash_bytes(digest.hex()) == digest
    with pytest.raises(EncodingError):
        to_hash_bytes("0x1234")
    with pytest.raises(EncodingError):
        to_hash_bytes("0x" + "gg" * 32)
    with pytest.raises(EncodingError):
        to_hash_bytes(digest + b"\x00")


def test_encoding_errors_are_validation_errors() -> None:
    """Encoding failures map to 400 responses like other bad input."""
    with pytest.raises(ValidationError) as exc_info:
        normalize_address("0x1234")
    assert exc_info.value.status_code == 400


def test_normalize_address_returns_checksum_form() -> None:
    assert normalize_address(PROVIDER_ADDRESS.lower()) == PROVIDER_ADDRESS
