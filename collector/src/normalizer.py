"""
Pure normalizer that turns raw Solarman readings into typed tick values.

Picks the instantaneous power from the ordered power candidates and applies
the noise floor, and resolves the battery state of charge.  Both are pure
functions: no side effects, no I/O, no clock.

CHANGELOG:
- 2026-10-18: Use a single documented noise floor (STORY-005)
- 2026-10-18: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from collector.src.fields import BATTERY_SOC_CANDIDATES, POWER_CANDIDATES, first_present

logger = logging.getLogger(__name__)

DEFAULT_NOISE_FLOOR_W: float = 20.0
"""Readings strictly below this wattage are reported as 0 W."""


def apply_noise_floor(power_w: float, noise_floor_w: float = DEFAULT_NOISE_FLOOR_W) -> float:
    """Clamp readings strictly below *noise_floor_w* to exactly 0.

    Overnight the API reports small positive jitter; clamping it keeps the
    integrator from accruing energy that was never produced.  Readings at
    or above the floor pass through unchanged.
    """
    if power_w < noise_floor_w:
        return 0.0
    return power_w


def estimate_power(
    snapshot: Mapping[str, object],
    station_fields: Mapping[str, object],
    *,
    noise_floor_w: float = DEFAULT_NOISE_FLOOR_W,
) -> float:
    """Select the tick's instantaneous power in watts.

    Candidates are tried in order: station generation power, AC output,
    DC input, inverter output.  When none is present the power is 0.

    Args:
        snapshot: Raw device snapshot for this tick.
        station_fields: Raw station-level fields for this tick.
        noise_floor_w: Clamp threshold in watts.

    Returns:
        Non-negative power in watts.
    """
    found = first_present(POWER_CANDIDATES, station=station_fields, device=snapshot)
    if found is None:
        logger.warning("No power field present in snapshot, using 0 W")
        return 0.0

    field_def, value = found
    logger.debug("Power %.1f W from %s '%s'", value, field_def.source, field_def.key)
    return apply_noise_floor(value, noise_floor_w)


def resolve_battery_soc(
    snapshot: Mapping[str, object],
    station_fields: Mapping[str, object],
) -> float:
    """Return the battery state of charge in percent, 0 when absent."""
    found = first_present(BATTERY_SOC_CANDIDATES, station=station_fields, device=snapshot)
    if found is None:
        return 0.0
    return found[1]
