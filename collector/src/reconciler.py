"""
Lifetime energy reconciler.

Turns one tick's telemetry into an authoritative, non-decreasing lifetime
energy value.  Two strategies are chosen per tick:

- **Counter mode**: a device or station exposes a cumulative lifetime
  counter; its value is the candidate.
- **Integration mode**: no counter is present; the candidate is the
  calibration floor plus energy integrated from instantaneous power.

A monotonicity guard then replaces absent, zero or below-floor candidates
with the floor, and never emits less than the previous tick's value.

``reconcile`` is a pure function: the caller passes the current
CalibrationState in and receives the next one back, committing it only once
the tick's sample has been persisted.

CHANGELOG:
- 2026-10-18: Never rewind last_tick_ms on an out-of-order tick (STORY-015)
- 2026-10-18: Re-anchor accumulator from valid counter readings (STORY-006)
- 2026-10-18: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from collector.src.fields import LIFETIME_CANDIDATES, first_present
from collector.src.models import CalibrationState, EnergyMode
from collector.src.normalizer import DEFAULT_NOISE_FLOOR_W

logger = logging.getLogger(__name__)

_MS_PER_HOUR: float = 3_600_000.0


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """Outcome of reconciling one tick.

    Attributes:
        lifetime_kwh: Lifetime energy to emit for this tick.
        mode: Strategy that produced the candidate.
        state: CalibrationState to carry into the next tick.
        guarded: True when the guard replaced the candidate.
    """

    lifetime_kwh: float
    mode: EnergyMode
    state: CalibrationState
    guarded: bool = False


def elapsed_hours(state: CalibrationState, now_ms: int) -> float:
    """Hours since the previous tick, 0 for the first tick or a clock step back."""
    if state.last_tick_ms is None or now_ms <= state.last_tick_ms:
        return 0.0
    return (now_ms - state.last_tick_ms) / _MS_PER_HOUR


def integrate(
    state: CalibrationState,
    power_w: float,
    now_ms: int,
    *,
    noise_floor_w: float = DEFAULT_NOISE_FLOOR_W,
) -> float:
    """Return the accumulator after integrating *power_w* up to *now_ms*.

    Ticks at or below the noise floor are non-productive and add nothing.
    """
    if power_w <= noise_floor_w:
        return state.accumulated_kwh
    return state.accumulated_kwh + (power_w / 1000.0) * elapsed_hours(state, now_ms)


def reconcile(
    snapshot: Mapping[str, object],
    station_fields: Mapping[str, object],
    power_w: float,
    state: CalibrationState,
    now_ms: int,
    *,
    noise_floor_w: float = DEFAULT_NOISE_FLOOR_W,
) -> Reconciliation:
    """Reconcile one tick into a lifetime-energy value and the next state.

    Args:
        snapshot: Raw device snapshot for this tick.
        station_fields: Raw station-level fields for this tick.
        power_w: Tick power after the noise clamp, in watts.
        state: State carried from the previous tick.
        now_ms: Tick timestamp in epoch milliseconds.
        noise_floor_w: Threshold at or below which no energy accrues.

    Returns:
        A :class:`Reconciliation` holding the emitted value and next state.
    """
    floor = state.floor_kwh
    counter = first_present(LIFETIME_CANDIDATES, station=station_fields, device=snapshot)

    if counter is not None:
        mode = EnergyMode.COUNTER
        field_def, candidate = counter
        accumulated = state.accumulated_kwh
        if candidate > 0 and candidate >= floor:
            accumulated = max(accumulated, candidate - floor)
        else:
            logger.warning(
                "Counter '%s' reported %.3f kWh below floor %.3f kWh, holding floor",
                field_def.key,
                candidate,
                floor,
            )
    else:
        mode = EnergyMode.INTEGRATION
        accumulated = integrate(state, power_w, now_ms, noise_floor_w=noise_floor_w)
        candidate = floor + accumulated

    guarded = candidate <= 0 or candidate < floor
    emitted = floor if guarded else candidate

    if state.last_emitted_kwh is not None and emitted < state.last_emitted_kwh:
        logger.warning(
            "Lifetime %.3f kWh below previous %.3f kWh, holding previous value",
            emitted,
            state.last_emitted_kwh,
        )
        emitted = state.last_emitted_kwh
        guarded = True

    # The integration clock never moves backwards.
    last_tick_ms = now_ms if state.last_tick_ms is None else max(state.last_tick_ms, now_ms)
    next_state = state.model_copy(
        update={
            "accumulated_kwh": accumulated,
            "last_tick_ms": last_tick_ms,
            "last_emitted_kwh": emitted,
        }
    )
    return Reconciliation(lifetime_kwh=emitted, mode=mode, state=next_state, guarded=guarded)
