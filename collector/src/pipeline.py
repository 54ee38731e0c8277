"""
Collection pipeline: one serialized reconciliation per tick.

A tick fetches a fresh credential, the station summary and the device
snapshot, estimates power, reconciles lifetime energy and persists the
sample together with the next CalibrationState.  The in-memory state only
advances after the database write succeeded, so a failed tick leaves no
partial update behind.

The periodic poll loop and the read cache share one Collector; an
asyncio.Lock keeps ticks and administrative recalibrations from
interleaving.

CHANGELOG:
- 2026-10-18: Clamp tick timestamps to the last committed tick (STORY-015)
- 2026-10-18: Serialize recalibration with ticks (STORY-011)
- 2026-10-18: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from collector.src.errors import CalibrationValidationError, FetchError, ParseError
from collector.src.fields import parse_number
from collector.src.models import CachedResult, CalibrationState, RawSnapshot, Sample, StationSummary
from collector.src.normalizer import DEFAULT_NOISE_FLOOR_W, estimate_power, resolve_battery_soc
from collector.src.reconciler import reconcile

if TYPE_CHECKING:
    from collector.src.solarman import SolarmanClient
    from collector.src.store import SampleStore

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 15.0


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def parse_calibration(value: object) -> float:
    """Validate an administrative calibration value.

    Accepts numbers and numeric strings (``.`` or ``,`` decimal separator).

    Raises:
        CalibrationValidationError: If the value is not a finite number >= 0.
    """
    try:
        floor = parse_number(value)
    except ParseError as exc:
        raise CalibrationValidationError(f"Invalid calibration value: {value!r}") from exc
    if floor < 0:
        raise CalibrationValidationError("Calibration value must be >= 0")
    return floor


class Collector:
    """Runs the collection pipeline and owns the CalibrationState.

    Args:
        client: Solarman API client (or any object with the same methods).
        store: Open sample store.
        base_total_kwh: Calibration floor used when no state is persisted.
        noise_floor_w: Power noise floor in watts.
        timeout_s: Timeout covering all upstream calls of one tick.
    """

    def __init__(
        self,
        *,
        client: SolarmanClient,
        store: SampleStore,
        base_total_kwh: float,
        noise_floor_w: float = DEFAULT_NOISE_FLOOR_W,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._store = store
        self._base_total_kwh = base_total_kwh
        self._noise_floor_w = noise_floor_w
        self._timeout_s = timeout_s
        self._state: CalibrationState | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CalibrationState:
        """Current committed CalibrationState."""
        assert self._state is not None, "Collector not started. Call load_state()."
        return self._state

    async def load_state(self) -> CalibrationState:
        """Load the persisted state, or persist a fresh one from BASE_TOTAL_KWH."""
        state = await self._store.load_calibration()
        if state is None:
            state = CalibrationState.initial(self._base_total_kwh)
            await self._store.save_calibration(state)
            logger.info("Calibration initialised at %.3f kWh", state.floor_kwh)
        else:
            logger.info(
                "Calibration restored: floor=%.3f kWh accumulated=%.3f kWh",
                state.floor_kwh,
                state.accumulated_kwh,
            )
        self._state = state
        return state

    async def collect(self, tick_ms: int | None = None) -> CachedResult:
        """Run one full tick and return its result.

        A *tick_ms* older than the last committed tick is raised to it, so
        samples stay ordered and the integration clock never rewinds.

        Raises:
            AuthError: If the credential exchange failed.
            FetchError: If a query failed or the tick timed out.
        """
        async with self._lock:
            ts = tick_ms if tick_ms is not None else now_ms()
            last_tick_ms = self.state.last_tick_ms
            if last_tick_ms is not None and ts < last_tick_ms:
                # A caller that waited on the lock behind a later tick.
                logger.debug("Tick %d behind last tick %d, using the latter", ts, last_tick_ms)
                ts = last_tick_ms
            try:
                station, snapshot = await asyncio.wait_for(self._fetch(), self._timeout_s)
            except TimeoutError as exc:
                raise FetchError(f"Upstream fetch timed out after {self._timeout_s}s") from exc

            power_w = estimate_power(
                snapshot, station.fields, noise_floor_w=self._noise_floor_w
            )
            outcome = reconcile(
                snapshot,
                station.fields,
                power_w,
                self.state,
                ts,
                noise_floor_w=self._noise_floor_w,
            )
            sample = Sample(ts_ms=ts, power_w=power_w, lifetime_kwh=outcome.lifetime_kwh)
            await self._store.record_tick(sample, outcome.state)
            self._state = outcome.state

            logger.info(
                "Tick: power=%.1f W lifetime=%.3f kWh mode=%s guarded=%s",
                power_w,
                outcome.lifetime_kwh,
                outcome.mode.value,
                outcome.guarded,
            )
            return CachedResult(
                station_name=station.name,
                current_power_w=power_w,
                total_kwh=outcome.lifetime_kwh,
                battery_soc=resolve_battery_soc(snapshot, station.fields),
                cached_at_ms=ts,
                mode=outcome.mode,
            )

    async def recalibrate(self, value: object, tick_ms: int | None = None) -> CachedResult:
        """Adopt a new calibration floor and clear the sample series.

        Validation happens before any state is touched.

        Raises:
            CalibrationValidationError: If *value* is not a valid floor.
        """
        floor = parse_calibration(value)
        async with self._lock:
            state = CalibrationState.initial(floor)
            await self._store.reset(state)
            self._state = state
        logger.warning("Recalibrated: floor=%.3f kWh, samples cleared", floor)
        return CachedResult.default(floor, tick_ms if tick_ms is not None else now_ms())

    async def _fetch(self) -> tuple[StationSummary, RawSnapshot]:
        credential = await self._client.fetch_credential()
        station = await self._client.fetch_station_summary(credential)
        snapshot = await self._client.fetch_device_snapshot(credential, station.id)
        return station, snapshot
