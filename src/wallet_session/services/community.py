"""Community configuration lookup.

Communities are published as a JSON list of wallet configs. Only the parts
the session protocol needs are parsed: the alias, the primary session
manager (module + provider addresses) and the RPC endpoint of its chain.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from wallet_session.core.errors import CommunityNotFoundError, ConfigurationError, EncodingError
from wallet_session.core.settings import Settings, settings
from wallet_session.utils.hash import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionManagerConfig:
    """Primary session manager deployment for a community."""

    chain_id: int
    module_address: str
    provider_address: str
    rpc_url: str


@dataclass(frozen=True)
class CommunityConfig:
    """Subset of a community config consumed by the session protocol."""

    alias: str
    session_manager: SessionManagerConfig

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CommunityConfig:
        """Parse a published community config.

        Raises:
            ConfigurationError: If the config has no usable session manager.
        """
        try:
            alias = str(raw["community"]["alias"]).strip()
            sessions: Mapping[str, Any] = raw["sessions"]
            primary = raw["community"].get("primary_session_manager")
            if primary:
                key = f"{primary['chain_id']}:{primary['address']}"
                session = sessions[key]
            else:
                session = next(iter(sessions.values()))
            chain_id = int(session["chain_id"])
            rpc_url = raw["chains"][str(chain_id)]["node"]["url"]
            return cls(
                alias=alias,
                session_manager=SessionManagerConfig(
                    chain_id=chain_id,
                    module_address=normalize_address(session["module_address"]),
                    provider_address=normalize_address(session["provider_address"]),
                    rpc_url=rpc_url,
                ),
            )
        except (KeyError, TypeError, ValueError, StopIteration, EncodingError) as err:
            raise ConfigurationError(f"Community config is missing session settings: {err}") from err


class CommunityConfigService:
    """Resolves community configs by alias with a short-lived cache."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        configs: Sequence[Mapping[str, Any]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = config or settings
        self._static = list(configs) if configs is not None else None
        self._transport = transport
        self._cache: list[Mapping[str, Any]] | None = None
        self._cached_at = 0.0
        self._lock = asyncio.Lock()

    async def _load(self) -> list[Mapping[str, Any]]:
        if self._static is not None:
            return self._static

        url = self._settings.communities_config_url
        if not url:
            raise ConfigurationError("COMMUNITIES_CONFIG_URL is not set")

        async with self._lock:
            ttl = max(0, self._settings.communities_cache_seconds)
            if self._cache is not None and time.monotonic() - self._cached_at < ttl:
                return self._cache
            try:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.ledger_timeout_seconds),
                    transport=self._transport,
                ) as client:
                    response = await client.get(url)
                    response.raise_for_status()
                    payload = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Failed to load community configs", exc_info=True)
                raise ConfigurationError(f"Unable to load community configs: {exc}") from exc
            if not isinstance(payload, list):
                raise ConfigurationError("Community configs must be a JSON list")
            self._cache = payload
            self._cached_at = time.monotonic()
            return payload

    async def get_config(self, alias: str) -> CommunityConfig:
        """Return the config for ``alias``.

        Raises:
            CommunityNotFoundError: If no community uses the alias.
            ConfigurationError: If configs cannot be loaded or parsed.
        """
        wanted = alias.strip()
        for raw in await self._load():
            community = raw.get("community") if isinstance(raw, Mapping) else None
            if isinstance(community, Mapping) and str(community.get("alias", "")).strip() == wanted:
                return CommunityConfig.from_mapping(raw)
        raise CommunityNotFoundError(f'Community "{wanted}" not found')
