"""
Read cache in front of the collection pipeline.

Serves the last collection result while it is younger than the freshness
window, so the Solarman API is called at most once per window no matter
how many readers arrive.  Refreshes are single-flight: concurrent readers
of a stale cache wait for one refresh and share its result.

A failed refresh never reaches the reader.  The previous result is served
while it is younger than the stale window; after that a zeroed default
carrying the current lifetime value is returned.

CHANGELOG:
- 2026-10-18: Re-read the clock after waiting for the refresh lock (STORY-015)
- 2026-10-18: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from collector.src.errors import CollectorError
from collector.src.models import CachedResult
from collector.src.pipeline import now_ms

if TYPE_CHECKING:
    from collector.src.pipeline import Collector

logger = logging.getLogger(__name__)

DEFAULT_TTL_S: float = 30.0
DEFAULT_MAX_STALE_S: float = 600.0


class ReadCache:
    """Memoizes Collector.collect() results for a freshness window.

    Args:
        collector: The pipeline to refresh from.
        ttl_s: Freshness window in seconds.
        max_stale_s: Oldest result served when a refresh fails.
    """

    def __init__(
        self,
        collector: Collector,
        *,
        ttl_s: float = DEFAULT_TTL_S,
        max_stale_s: float = DEFAULT_MAX_STALE_S,
    ) -> None:
        self._collector = collector
        self._ttl_ms = int(ttl_s * 1000)
        self._max_stale_ms = int(max_stale_s * 1000)
        self._result: CachedResult | None = None
        self._failed_at_ms: int | None = None
        self._lock = asyncio.Lock()

    @property
    def result(self) -> CachedResult | None:
        """Last cached result, or None."""
        return self._result

    def _is_fresh(self, now: int) -> bool:
        return self._result is not None and now - self._result.cached_at_ms < self._ttl_ms

    async def get_or_compute(self, at_ms: int | None = None) -> CachedResult:
        """Return a fresh cached result, refreshing it when needed.

        Never raises for upstream failures.
        """
        now = at_ms if at_ms is not None else now_ms()
        if self._is_fresh(now):
            return self._result  # type: ignore[return-value]

        async with self._lock:
            if at_ms is None:
                now = now_ms()
            # Another reader may have refreshed while we waited.
            if self._is_fresh(now):
                return self._result  # type: ignore[return-value]
            # A failed refresh also counts against the upstream rate limit.
            if self._failed_at_ms is not None and now - self._failed_at_ms < self._ttl_ms:
                return self._fallback(now)
            try:
                result = await self._collector.collect(now)
            except CollectorError as exc:
                logger.warning("Cache refresh failed: %s", exc)
                self._failed_at_ms = now
                return self._fallback(now)
            except Exception:
                logger.error("Unexpected cache refresh error", exc_info=True)
                self._failed_at_ms = now
                return self._fallback(now)
            self._result = result
            self._failed_at_ms = None
            return result

    def prime(self, result: CachedResult) -> None:
        """Store a result produced outside the cache (e.g. by the poll loop)."""
        self._result = result
        self._failed_at_ms = None

    def invalidate(self) -> None:
        """Drop the cached result."""
        self._result = None
        self._failed_at_ms = None

    def _fallback(self, now: int) -> CachedResult:
        if self._result is not None and now - self._result.cached_at_ms < self._max_stale_ms:
            logger.info("Serving stale result from %d", self._result.cached_at_ms)
            return self._result
        state = self._collector.state
        total = state.last_emitted_kwh if state.last_emitted_kwh is not None else state.floor_kwh
        return CachedResult.default(total, now)
