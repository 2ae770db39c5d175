# src/wallet_session/api/v1/endpoints/session.py
"""Session request and confirmation endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from wallet_session.api.v1.dependencies import SessionProtocolDep
from wallet_session.schemas.session import (
    SessionConfirmBody,
    SessionConfirmResponse,
    SessionRequestBody,
    SessionRequestResponse,
)
from wallet_session.utils.hash import to_hex

router = APIRouter(prefix="/app/{alias}/session", tags=["sessions"])


@router.post(
    "",
    summary="Request a session backed by an identity proof",
    response_model=SessionRequestResponse,
)
async def request_session(
    alias: str,
    payload: SessionRequestBody,
    protocol: SessionProtocolDep,
) -> SessionRequestResponse:
    """Verify the owner's request signature, issue a challenge and relay the request."""
    result = await protocol.request(
        alias,
        payload.provider,
        payload.owner,
        payload.source,
        payload.type,
        payload.expiry,
        payload.signature,
        context=payload.context,
    )
    return SessionRequestResponse(
        session_request_tx_hash=result.tx_hash,
        session_request_hash=to_hex(result.session_request_hash),
        salt=to_hex(result.salt),
        challenge_expiry=result.challenge_expiry,
        challenge=result.challenge,
    )


@router.patch(
    "",
    summary="Confirm a session with the owner's signed session hash",
    response_model=SessionConfirmResponse,
)
async def confirm_session(
    alias: str,
    payload: SessionConfirmBody,
    protocol: SessionProtocolDep,
) -> SessionConfirmResponse:
    """Check the confirmation against the ledger record and relay it."""
    result = await protocol.confirm(
        alias,
        payload.provider,
        payload.owner,
        payload.session_request_hash,
        payload.session_hash,
        payload.signed_session_hash,
    )
    return SessionConfirmResponse(session_confirm_tx_hash=result.tx_hash)
