"""Tagged error types raised by the session protocol.

Every failure the protocol can report is a subclass of :class:`SessionError`
carrying a closed :class:`ErrorKind` tag, the HTTP status it maps to and a
message that is safe to show to callers. Callers dispatch on ``kind`` (or the
class), never on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    """Closed set of caller-facing error categories."""

    VALIDATION = "validation_error"
    INVALID_PROVIDER = "invalid_provider"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_CONFIRMATION = "invalid_confirmation"
    NOT_FOUND = "not_found"
    SESSION_EXPIRED = "session_expired"
    CHALLENGE_EXPIRED = "challenge_expired"
    ALREADY_CONFIRMED = "already_confirmed"
    HASH_MISMATCH = "hash_mismatch"
    RATE_LIMITED = "rate_limited"
    ORACLE_UNAVAILABLE = "oracle_unavailable"
    RELAY_ERROR = "relay_error"
    DELIVERY_ERROR = "delivery_error"
    CONFIGURATION_ERROR = "configuration_error"


class SessionError(RuntimeError):
    """Base exception for all session protocol failures."""

    kind: ClassVar[ErrorKind]
    status_code: ClassVar[int] = 500
    public_message: ClassVar[str] = "Internal Server Error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    @property
    def message(self) -> str:
        """Return the message exposed to callers.

        Server-side failures never expose their detail.
        """
        if self.status_code >= 500:
            return self.public_message
        return self.detail


class ValidationError(SessionError):
    """Raised for malformed or missing input fields."""

    kind = ErrorKind.VALIDATION
    status_code = 400
    public_message = "Invalid request"


class EncodingError(ValidationError):
    """Raised when values cannot be ABI encoded (bad address, range overflow)."""


class InvalidProviderError(SessionError):
    """Raised when the request names a provider other than the configured one."""

    kind = ErrorKind.INVALID_PROVIDER
    status_code = 400
    public_message = "Invalid provider address"


class InvalidSignatureError(SessionError):
    """Raised when the session request signature does not recover to the owner."""

    kind = ErrorKind.INVALID_SIGNATURE
    status_code = 401
    public_message = "Invalid session request signature"


class InvalidConfirmationError(SessionError):
    """Raised when the signed session hash does not recover to the owner."""

    kind = ErrorKind.INVALID_CONFIRMATION
    status_code = 401
    public_message = "Invalid session confirm"


class NotFoundError(SessionError):
    """Base class for missing resources."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404
    public_message = "Not found"


class CommunityNotFoundError(NotFoundError):
    """Raised when no community configuration exists for an alias."""

    public_message = "Community not found"


class SessionNotFoundError(NotFoundError):
    """Raised when the ledger holds no session request for the given key."""

    public_message = "Session request not found"


class SessionExpiredError(SessionError):
    """Raised when the session expiry is not in the future."""

    kind = ErrorKind.SESSION_EXPIRED
    status_code = 400
    public_message = "Session request expired"


class ChallengeExpiredError(SessionError):
    """Raised when the challenge expiry is not in the future."""

    kind = ErrorKind.CHALLENGE_EXPIRED
    status_code = 400
    public_message = "Challenge expired"


class SessionAlreadyConfirmedError(SessionError):
    """Raised when the ledger reports the session request as confirmed."""

    kind = ErrorKind.ALREADY_CONFIRMED
    status_code = 409
    public_message = "Session already confirmed"


class HashMismatchError(SessionError):
    """Raised when the session hash was not issued by this service."""

    kind = ErrorKind.HASH_MISMATCH
    status_code = 400
    public_message = "Invalid session hash"


class RateLimitedError(SessionError):
    """Raised when a (salt, alias) pair exceeds a request window threshold."""

    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    public_message = "Too many session requests"


class OracleUnavailableError(SessionError):
    """Raised when the ledger cannot be read in time."""

    kind = ErrorKind.ORACLE_UNAVAILABLE
    status_code = 503
    public_message = "Ledger temporarily unavailable"


class RelayError(SessionError):
    """Raised when the relay fails to accept a signed call."""

    kind = ErrorKind.RELAY_ERROR
    status_code = 502
    public_message = "Transaction relay failed"


class DeliveryError(SessionError):
    """Raised by notifiers when a challenge cannot be delivered."""

    kind = ErrorKind.DELIVERY_ERROR
    status_code = 502
    public_message = "Challenge delivery failed"


class ConfigurationError(SessionError):
    """Raised when a required secret or setting is missing.

    The detail is kept for logs; callers only ever see the generic message.
    """

    kind = ErrorKind.CONFIGURATION_ERROR
    status_code = 500
    public_message = "Server configuration error"


__all__ = [
    "ChallengeExpiredError",
    "CommunityNotFoundError",
    "ConfigurationError",
    "DeliveryError",
    "EncodingError",
    "ErrorKind",
    "HashMismatchError",
    "InvalidConfirmationError",
    "InvalidProviderError",
    "InvalidSignatureError",
    "NotFoundError",
    "OracleUnavailableError",
    "RateLimitedError",
    "RelayError",
    "SessionAlreadyConfirmedError",
    "SessionError",
    "SessionExpiredError",
    "SessionNotFoundError",
    "ValidationError",
]
