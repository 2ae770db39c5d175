# src/wallet_session/api/v1/endpoints/system.py
"""Operational endpoints for monitoring the service."""

from fastapi import APIRouter

from wallet_session.api.v1.dependencies import RelayClientDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/relay/metrics")
async def get_relay_metrics(relay: RelayClientDep) -> dict[str, object]:
    """Get relay submission metrics and circuit breaker state.

    Returns:
        Dictionary with submission counts, latency and breaker state
    """
    return relay.get_metrics()
