"""Signature utilities built on Ethereum personal-message recovery."""
from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct

from wallet_session.utils.hash import HashLike, to_hash_bytes


SIGNATURE_LENGTH_BYTES = 65


def decode_signature(signature: bytes | str) -> bytes:
    """Return the raw bytes of a 65-byte signature given as bytes or hex.

    A recovery id of 0 or 1 is shifted to 27 or 28, the form personal-message
    recovery expects.

    Raises:
        ValueError: If the signature is not valid hex or has the wrong length.
    """
    if isinstance(signature, str):
        cleaned = signature[2:] if signature[:2].lower() == "0x" else signature
        raw = bytes.fromhex(cleaned)
    else:
        raw = bytes(signature)
    if len(raw) != SIGNATURE_LENGTH_BYTES:
        raise ValueError(f"Signatures must be {SIGNATURE_LENGTH_BYTES} bytes")
    if raw[-1] < 27:
        raw = raw[:-1] + bytes([raw[-1] + 27])
    return raw


def recover_signer(message_hash: HashLike, signature: bytes | str) -> str | None:
    """Recover the address that signed ``message_hash`` as a personal message.

    Args:
        message_hash: 32-byte hash that was signed as raw bytes (EIP-191).
        signature: 65-byte ``r || s || v`` signature, bytes or hex.

    Returns:
        The checksummed signer address, or None if recovery fails.
    """
    try:
        message = encode_defunct(primitive=to_hash_bytes(message_hash))
        return Account.recover_message(message, signature=decode_signature(signature))
    except Exception:
        return None


def verify_signature(
    message_hash: HashLike,
    signature: bytes | str,
    expected_address: str,
) -> bool:
    """Verify a personal-message signature against an expected signer.

    Args:
        message_hash: 32-byte hash the signer committed to.
        signature: Signature as bytes or hex.
        expected_address: Address the signature must recover to.

    Returns:
        True if the recovered signer matches ``expected_address`` (case-insensitive);
        False otherwise, including for malformed input.
    """
    if not isinstance(expected_address, str) or not expected_address:
        return False
    recovered = recover_signer(message_hash, signature)
    if recovered is None:
        return False
    return recovered.lower() == expected_address.lower()
