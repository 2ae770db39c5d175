"""Rate limiting of session requests per (salt, alias).

Every attempt is logged before the windows are counted, and the log row is
committed first. Concurrent workers therefore always see each other's
attempts, and a burst can only be over-counted, never under-counted.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Protocol

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from wallet_session.core.errors import RateLimitedError
from wallet_session.models import SessionRequestLog

logger = logging.getLogger(__name__)

IMMEDIATE_WINDOW_SECONDS = 30
RECENT_WINDOW_SECONDS = 10 * 60
DAILY_WINDOW_SECONDS = 24 * 60 * 60


class RateLimitStore(Protocol):
    """Storage collaborator counting requests in trailing windows."""

    def count(self, salt: str, alias: str, window_seconds: int, *, now: int | None = None) -> int: ...

    def record(self, salt: str, alias: str, *, now: int | None = None) -> None: ...

    def record_and_count(
        self, salt: str, alias: str, window_seconds: int, *, now: int | None = None
    ) -> int: ...


class SqlRateLimitStore:
    """Rate-limit store backed by the ``session_request`` table.

    Rows older than ``retention_seconds`` can no longer fall inside any window;
    ``record_and_count`` drops them for the key it touches and ``prune`` drops
    them for every key.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        retention_seconds: int = DAILY_WINDOW_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._retention_seconds = retention_seconds

    @staticmethod
    def _count_stmt(salt: str, alias: str, since: int) -> Select[tuple[int]]:
        return select(func.count(SessionRequestLog.id)).where(
            SessionRequestLog.salt == salt,
            SessionRequestLog.alias == alias,
            SessionRequestLog.created_at >= since,
        )

    def count(self, salt: str, alias: str, window_seconds: int, *, now: int | None = None) -> int:
        """Return the number of requests logged within the trailing window."""
        current = int(time.time()) if now is None else now
        with self._session_factory() as session:
            stmt = self._count_stmt(salt, alias, current - window_seconds)
            return int(session.execute(stmt).scalar_one())

    def record(self, salt: str, alias: str, *, now: int | None = None) -> None:
        """Log one request for ``(salt, alias)``."""
        current = int(time.time()) if now is None else now
        with self._session_factory() as session:
            session.add(SessionRequestLog(salt=salt, alias=alias, created_at=current))
            session.commit()

    def record_and_count(
        self, salt: str, alias: str, window_seconds: int, *, now: int | None = None
    ) -> int:
        """Log a request and return the window count including it.

        The row is committed before counting, so the count also includes
        attempts committed concurrently by other workers.
        """
        current = int(time.time()) if now is None else now
        with self._session_factory() as session:
            session.execute(
                delete(SessionRequestLog).where(
                    SessionRequestLog.salt == salt,
                    SessionRequestLog.alias == alias,
                    SessionRequestLog.created_at < current - self._retention_seconds,
                )
            )
            session.add(SessionRequestLog(salt=salt, alias=alias, created_at=current))
            session.commit()
            stmt = self._count_stmt(salt, alias, current - window_seconds)
            return int(session.execute(stmt).scalar_one())

    def prune(self, *, now: int | None = None) -> int:
        """Delete rows that no window can see any more.

        Returns:
            Number of rows removed
        """
        current = int(time.time()) if now is None else now
        with self._session_factory() as session:
            result = session.execute(
                delete(SessionRequestLog).where(
                    SessionRequestLog.created_at < current - self._retention_seconds
                )
            )
            session.commit()
        removed = int(result.rowcount or 0)
        if removed:
            logger.info("Pruned %d expired session request rows", removed)
        return removed


def enforce_rate_limit(
    store: RateLimitStore,
    salt: str,
    alias: str,
    thresholds: Mapping[int, int],
    *,
    now: int,
) -> None:
    """Log the attempt, then reject it if any window now exceeds its threshold.

    Rejected attempts stay logged and keep counting against their windows.

    Args:
        store: Request log.
        salt: Hex salt of the identity claim.
        alias: Community alias.
        thresholds: Maximum requests allowed per window length in seconds;
            a threshold of 0 disables the window.
        now: Current unix time.

    Raises:
        RateLimitedError: If a window is exhausted.
    """
    active = sorted((window, limit) for window, limit in thresholds.items() if limit > 0)
    if not active:
        store.record(salt, alias, now=now)
        return

    (first_window, _), *rest = active
    counts = {first_window: store.record_and_count(salt, alias, first_window, now=now)}
    for window_seconds, _ in rest:
        counts[window_seconds] = store.count(salt, alias, window_seconds, now=now)

    for window_seconds, limit in active:
        if counts[window_seconds] > limit:
            logger.warning(
                "Rate limit hit for alias %s (%s requests per %ss)", alias, limit, window_seconds
            )
            raise RateLimitedError()
