# src/wallet_session/utils/hash.py
"""Hash-chain derivation shared with the wallet clients.

The salt, session request hash and session hash are recomputed independently
by the wallet apps and by the Session Manager contract, so the encoding here
is a wire contract: Solidity ABI encoding (32-byte big-endian words) hashed
with Keccak-256.
"""

from __future__ import annotations

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from wallet_session.core.errors import EncodingError

HASH_LENGTH_BYTES = 32
UINT48_MAX = 2**48 - 1
UINT256_MAX = 2**256 - 1

HashLike = bytes | str


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of ``data``."""
    return keccak(data)


def to_hash_bytes(value: HashLike, *, field: str = "hash") -> bytes:
    """Normalize a 32-byte hash given as bytes or ``0x`` hex.

    Raises:
        EncodingError: If the value is not exactly 32 bytes.
    """
    if isinstance(value, str):
        cleaned = value[2:] if value[:2].lower() == "0x" else value
        try:
            raw = bytes.fromhex(cleaned)
        except ValueError as err:
            raise EncodingError(f"Invalid hex encoding for {field}") from err
    else:
        raw = bytes(value)
    if len(raw) != HASH_LENGTH_BYTES:
        raise EncodingError(f"{field} must be {HASH_LENGTH_BYTES} bytes")
    return raw


def to_hex(value: bytes) -> str:
    """Return the ``0x``-prefixed lowercase hex form used at the API edge."""
    return "0x" + value.hex()


def normalize_address(address: str, *, field: str = "address") -> str:
    """Return the checksummed form of an address.

    Raises:
        EncodingError: If the address is not a well-formed 20-byte address.
    """
    if not isinstance(address, str) or not is_address(address):
        raise EncodingError(f"Invalid {field}")
    return to_checksum_address(address)


def derive_salt(source: str, session_type: str) -> bytes:
    """Hash ``"{source}:{type}"`` into the salt scoping a session request."""
    return keccak256(f"{source}:{session_type}".encode())


def derive_session_request_hash(
    provider: str,
    owner: str,
    salt: HashLike,
    expiry: int,
) -> bytes:
    """Derive the key identifying an in-flight session request.

    Encodes ``(address, address, bytes32, uint48)`` and hashes the result.

    Args:
        provider: Session provider address.
        owner: Session owner address.
        salt: Output of :func:`derive_salt`.
        expiry: Session expiry as a unix timestamp.

    Returns:
        The 32-byte session request hash.

    Raises:
        EncodingError: On malformed addresses or an expiry outside uint48.
    """
    provider_addr = normalize_address(provider, field="provider address")
    owner_addr = normalize_address(owner, field="owner address")
    salt_bytes = to_hash_bytes(salt, field="salt")
    if isinstance(expiry, bool) or not isinstance(expiry, int):
        raise EncodingError("expiry must be an integer")
    if not 0 <= expiry <= UINT48_MAX:
        raise EncodingError("expiry is outside the uint48 range")

    encoded = encode(
        ["address", "address", "bytes32", "uint48"],
        [provider_addr, owner_addr, salt_bytes, expiry],
    )
    return keccak256(encoded)


def derive_session_hash(session_request_hash: HashLike, challenge: int | str) -> bytes:
    """Bind a challenge to a session request.

    Numeric challenges are encoded as ``(bytes32, uint256)``; passkey
    connection messages as ``(bytes32, string)``.

    Raises:
        EncodingError: On a malformed request hash or out-of-range challenge.
    """
    request_hash = to_hash_bytes(session_request_hash, field="session request hash")
    if isinstance(challenge, bool):
        raise EncodingError("challenge must be an integer or a string")
    if isinstance(challenge, int):
        if not 0 <= challenge <= UINT256_MAX:
            raise EncodingError("challenge is outside the uint256 range")
        encoded = encode(["bytes32", "uint256"], [request_hash, challenge])
    elif isinstance(challenge, str):
        encoded = encode(["bytes32", "string"], [request_hash, challenge])
    else:
        raise EncodingError("challenge must be an integer or a string")
    return keccak256(encoded)
