"""
Aggregate endpoints over the stored sample series.

- GET /v1/today: energy produced since local midnight.
- GET /v1/curve: full-resolution power curve since local midnight, or since
  an explicit ``since_ms``.

Both read the sample store only; they never trigger an upstream call.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-012)

TODO:
- None
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from collector.src.aggregation import energy_since, local_midnight_ms, power_curve_since
from collector.src.api.deps import SettingsDep, StoreDep
from collector.src.pipeline import now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["series"])


@router.get("/today")
async def today(settings: SettingsDep, store: StoreDep) -> dict:
    """Return kWh produced since local midnight.

    Returns:
        dict: ``energy_today_kwh`` and the ``since_ms`` bound used.
    """
    since = local_midnight_ms(now_ms(), settings.tz)
    energy = await energy_since(store, since)
    return {"energy_today_kwh": round(energy, 3), "since_ms": since}


@router.get("/curve")
async def curve(
    settings: SettingsDep,
    store: StoreDep,
    since_ms: Annotated[int | None, Query(ge=0)] = None,
) -> dict:
    """Return ``(ts_ms, power_w)`` points ordered by time.

    Args:
        since_ms: Exclusive lower bound. Defaults to local midnight.

    Returns:
        dict: ``since_ms`` and ``points`` as ``{ts_ms, power_w}`` objects.
    """
    since = since_ms if since_ms is not None else local_midnight_ms(now_ms(), settings.tz)
    points = await power_curve_since(store, since)
    return {
        "since_ms": since,
        "points": [{"ts_ms": ts, "power_w": power} for ts, power in points],
    }
