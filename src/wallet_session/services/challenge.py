"""Challenge issuance for session requests.

Each :class:`SessionType` maps to exactly one strategy: email and SMS receive
a numeric one-time code delivered out of band, passkeys receive a connection
message that the caller signs locally.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Literal, Protocol

from wallet_session.utils.hash import normalize_address

DEFAULT_OTP_DIGITS = 6
# 9999-12-31T23:59:59Z, the last instant datetime can represent.
MAX_CALENDAR_TIMESTAMP = 253_402_300_799

Channel = Literal["email", "sms"]


class SessionType(str, Enum):
    """Identity proof backing a session request."""

    EMAIL = "email"
    SMS = "sms"
    PASSKEY = "passkey"


def normalize_source(source: str, session_type: SessionType) -> str:
    """Return the canonical form of an identity source used for salting.

    Emails are trimmed and lowercased, phone numbers lose all whitespace and
    passkey public keys are trimmed.
    """
    cleaned = source.strip()
    if session_type is SessionType.EMAIL:
        return cleaned.lower()
    if session_type is SessionType.SMS:
        return "".join(cleaned.split())
    return cleaned


def generate_numeric_challenge(digits: int = DEFAULT_OTP_DIGITS) -> int:
    """Draw a uniformly distributed code with exactly ``digits`` decimal digits."""
    if digits < 1:
        raise ValueError("digits must be at least 1")
    low = 10 ** (digits - 1)
    high = 10**digits - 1
    return low + secrets.randbelow(high - low + 1)


def _format_expiry(expiry: int) -> str:
    if 0 <= expiry <= MAX_CALENDAR_TIMESTAMP:
        expires_at = datetime.fromtimestamp(expiry, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"{expiry} ({expires_at})"
    # Past year 9999 there is no calendar form; the raw timestamp is still binding.
    return str(expiry)


def generate_passkey_challenge(owner: str, expiry: int, context: str | None = None) -> str:
    """Build the connection message a passkey holder signs.

    Args:
        owner: Session owner address.
        expiry: Session expiry as a unix timestamp.
        context: Optional origin or app name shown to the user. Whitespace,
            line breaks included, collapses to single spaces so the context
            always stays on its own line.

    Returns:
        A deterministic, human-readable message binding owner and expiry.
    """
    lines = [
        "Connect your account to start a session.",
        "",
        f"Account: {normalize_address(owner, field='owner address')}",
        f"Expiry: {_format_expiry(expiry)}",
    ]
    origin = " ".join(context.split()) if context else ""
    if origin:
        lines.append(f"Origin: {origin}")
    return "\n".join(lines)


class ChallengeStrategy(Protocol):
    """Produces the challenge bound into the session hash."""

    channel: Channel | None

    def issue(self, owner: str, expiry: int, context: str | None = None) -> int | str: ...


@dataclass(frozen=True)
class NumericChallengeStrategy:
    """One-time code delivered over email or SMS."""

    channel: Channel
    digits: int = DEFAULT_OTP_DIGITS

    def issue(self, owner: str, expiry: int, context: str | None = None) -> int:
        return generate_numeric_challenge(self.digits)


@dataclass(frozen=True)
class PasskeyChallengeStrategy:
    """Connection message returned to the caller for local signing."""

    channel: None = None

    def issue(self, owner: str, expiry: int, context: str | None = None) -> str:
        return generate_passkey_challenge(owner, expiry, context)


def challenge_strategy_for(
    session_type: SessionType,
    *,
    digits: int = DEFAULT_OTP_DIGITS,
) -> ChallengeStrategy:
    """Return the challenge strategy for a session type."""
    if session_type is SessionType.EMAIL:
        return NumericChallengeStrategy(channel="email", digits=digits)
    if session_type is SessionType.SMS:
        return NumericChallengeStrategy(channel="sms", digits=digits)
    if session_type is SessionType.PASSKEY:
        return PasskeyChallengeStrategy()
    raise ValueError(f"Unsupported session type: {session_type!r}")
