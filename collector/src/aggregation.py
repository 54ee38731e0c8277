"""
Aggregation service for derived energy values.

Computes energy produced since a timestamp (MAX - MIN of the lifetime
series) and the full-resolution intraday power curve from the sample
store.  Read-only: never writes to the store.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

if TYPE_CHECKING:
    from collector.src.store import SampleStore

logger = logging.getLogger(__name__)


def local_midnight_ms(now_ms: int, tz: ZoneInfo) -> int:
    """Return local midnight of the day containing *now_ms*, in epoch ms."""
    local_now = datetime.fromtimestamp(now_ms / 1000, tz=tz)
    midnight = datetime.combine(local_now.date(), time.min, tzinfo=tz)
    return int(midnight.timestamp() * 1000)


async def energy_since(store: SampleStore, since_ms: int) -> float:
    """Return kWh produced by samples strictly after *since_ms*.

    Computed as ``max(lifetime) - min(lifetime)`` and clamped at 0: rows
    recorded before a recalibration are not covered by the live
    monotonicity guard.

    Args:
        store: The sample store to query.
        since_ms: Exclusive lower bound in epoch milliseconds.

    Returns:
        float: Energy in kWh, 0 when no sample qualifies.
    """
    bounds = await store.energy_bounds(since_ms)
    if bounds is None:
        return 0.0
    low, high = bounds
    return max(high - low, 0.0)


async def power_curve_since(store: SampleStore, since_ms: int) -> list[tuple[int, float]]:
    """Return ``(ts_ms, power_w)`` points after *since_ms*, oldest first.

    Points are unfiltered and at full resolution.
    """
    samples = await store.query_range(since_ms)
    return [(s.ts_ms, s.power_w) for s in samples]
