"""
POST /v1/admin/recalibrate endpoint.

Adopts a new lifetime-energy calibration floor, zeroes the accumulator and
clears the sample series, atomically and serialized with collection ticks.
Requires the admin bearer token.  An invalid value is rejected with 422
and leaves every piece of state untouched.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-014)

TODO:
- None
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from collector.src.api.deps import CacheDep, CollectorDep, require_admin
from collector.src.errors import CalibrationValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class RecalibrateRequest(BaseModel):
    """Recalibration payload.

    Attributes:
        total_kwh: New lifetime-energy floor, as a number or a numeric
            string using ``.`` or ``,`` as decimal separator.
    """

    total_kwh: float | str


@router.post("/recalibrate")
async def recalibrate(
    body: RecalibrateRequest,
    collector: CollectorDep,
    cache: CacheDep,
) -> dict:
    """Reset the calibration floor and clear stored samples.

    Returns:
        dict: The realtime view right after the reset.

    Raises:
        HTTPException: 422 if ``total_kwh`` is not a finite number >= 0.
    """
    try:
        result = await collector.recalibrate(body.total_kwh)
    except CalibrationValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    cache.invalidate()
    logger.warning("Admin recalibration applied: %.3f kWh", result.total_kwh)
    return result.to_public()
