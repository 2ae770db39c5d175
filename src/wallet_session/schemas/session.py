"""Session request/confirm Pydantic schemas."""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

from wallet_session.services.challenge import SessionType

_HEX_PATTERN = re.compile(r"^0x[0-9a-fA-F]*$")


def _require_hex(value: str) -> str:
    if not _HEX_PATTERN.match(value):
        raise ValueError("must be 0x-prefixed hex")
    return value


class SessionRequestBody(BaseModel):
    """Request to start a session backed by an identity proof."""

    provider: str = Field(..., min_length=1, description="Primary session manager provider address")
    owner: str = Field(..., min_length=1, description="Address of the session owner")
    source: str = Field(..., min_length=1, description="Email, phone number or passkey public key")
    type: SessionType = Field(..., description="Kind of identity proof")
    expiry: int = Field(..., gt=0, description="Requested session expiry (unix seconds)")
    signature: str = Field(..., description="Owner signature over the session request hash")
    context: str | None = Field(
        None,
        max_length=256,
        description="Optional origin shown in passkey connection messages",
    )

    @field_validator("signature")
    @classmethod
    def validate_signature(cls, v: str) -> str:
        """Validate the signature is 0x-prefixed hex."""
        return _require_hex(v)

    @field_validator("context")
    @classmethod
    def validate_context(cls, v: str | None) -> str | None:
        """Keep the context to a single line of the connection message."""
        if v is not None and ("\n" in v or "\r" in v):
            raise ValueError("must not contain line breaks")
        return v


class SessionRequestResponse(BaseModel):
    """Response returned once the session request was relayed."""

    session_request_tx_hash: str = Field(..., alias="sessionRequestTxHash")
    session_request_hash: str = Field(..., alias="sessionRequestHash")
    salt: str = Field(..., description="Salt derived from source and type")
    challenge_expiry: int = Field(..., alias="challengeExpiry")
    challenge: str | None = Field(
        None,
        description="Connection message to sign (passkey sessions only)",
    )
    status: int = 200

    model_config = ConfigDict(populate_by_name=True)


class SessionConfirmBody(BaseModel):
    """Request to confirm a session with the owner's signed session hash."""

    provider: str = Field(..., min_length=1, description="Primary session manager provider address")
    owner: str = Field(..., min_length=1, description="Address of the session owner")
    session_request_hash: str = Field(..., alias="sessionRequestHash")
    session_hash: str = Field(..., alias="sessionHash")
    signed_session_hash: str = Field(..., alias="signedSessionHash")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("session_request_hash", "session_hash", "signed_session_hash")
    @classmethod
    def validate_hex(cls, v: str) -> str:
        """Validate hashes and signatures are 0x-prefixed hex."""
        return _require_hex(v)


class SessionConfirmResponse(BaseModel):
    """Response returned once the confirmation was relayed."""

    session_confirm_tx_hash: str = Field(..., alias="sessionConfirmTxHash")
    status: int = 200

    model_config = ConfigDict(populate_by_name=True)
