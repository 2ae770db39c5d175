# src/wallet_session/services/crypto.py
"""Cryptographic services for the session provider."""

from __future__ import annotations

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from wallet_session.core.errors import ConfigurationError
from wallet_session.core.settings import Settings, settings
from wallet_session.utils.hash import HashLike, to_hash_bytes


class ServiceSigner:
    """Signing identity of the session provider.

    Holds the provider private key and produces the personal-message
    signatures that are stored on, and later compared against, the ledger.
    """

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_private_key(cls, private_key: str | None) -> ServiceSigner:
        """Build a signer from a hex private key.

        Raises:
            ConfigurationError: If the key is missing or malformed.
        """
        if not private_key:
            raise ConfigurationError("PROVIDER_PRIVATE_KEY is not set")
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError) as err:
            raise ConfigurationError("PROVIDER_PRIVATE_KEY is invalid") from err
        return cls(account)

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> ServiceSigner:
        """Build a signer from application settings."""
        return cls.from_private_key((config or settings).provider_private_key)

    @property
    def address(self) -> str:
        """Checksummed address of the signing key."""
        return self._account.address

    def sign_hash(self, message_hash: HashLike) -> bytes:
        """Sign a 32-byte hash as a personal message.

        Signatures are deterministic (RFC 6979), so signing the same hash twice
        yields identical bytes.

        Returns:
            65-byte ``r || s || v`` signature
        """
        message = encode_defunct(primitive=to_hash_bytes(message_hash))
        signed = self._account.sign_message(message)
        return bytes(signed.signature)
