"""
GET /v1/realtime endpoint for the live station reading.

Returns station name, current power, reconciled lifetime energy and battery
state of charge from the read cache.  The cache bounds the Solarman API to
one call per freshness window and absorbs upstream failures, so this route
always answers 200.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-013)

TODO:
- None
"""

import logging

from fastapi import APIRouter

from collector.src.api.deps import CacheDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["realtime"])


@router.get("/realtime")
async def realtime(cache: CacheDep) -> dict:
    """Return the latest reconciled reading.

    Returns:
        dict: ``station_name``, ``current_power_w``, ``total_kwh`` and
        ``battery_soc``.
    """
    result = await cache.get_or_compute()
    return result.to_public()
