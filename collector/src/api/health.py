"""
Health check endpoint for the collector API.

GET /health reports liveness plus the reconciler's last committed tick and
calibration floor, so monitoring can spot a poll loop that stopped
producing samples. No authentication is required.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-013)

TODO:
- None
"""

from fastapi import APIRouter

from collector.src.api.deps import CollectorDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(collector: CollectorDep) -> dict:
    """Return service status and reconciler progress.

    Returns:
        dict: ``status`` (always ``"ok"``), ``last_tick_ms`` (None before
        the first tick) and ``floor_kwh``.
    """
    state = collector.state
    return {
        "status": "ok",
        "last_tick_ms": state.last_tick_ms,
        "floor_kwh": state.floor_kwh,
    }
