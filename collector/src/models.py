"""
Pydantic models for reconciled energy telemetry.

Defines the immutable Sample persisted once per successful tick, the
CalibrationState carried between ticks by the reconciler, the
StationSummary returned by the Solarman station query, and the
CachedResult served by the read cache.

CHANGELOG:
- 2026-10-18: Split accumulator and high-water mark in CalibrationState (STORY-006)
- 2026-10-18: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

RawSnapshot = dict[str, str | float | int | None]
"""Ordered mapping of telemetry field name to raw value for one tick."""


class EnergyMode(str, Enum):
    """How the lifetime-energy value of a tick was derived."""

    COUNTER = "counter"
    INTEGRATION = "integration"
    DEFAULT = "default"


class StationSummary(BaseModel):
    """Station-level data returned by the Solarman station list.

    Attributes:
        id: Solarman station id, used for device queries.
        name: Human readable station label.
        fields: Raw station-level values keyed by API field name
            (e.g. ``generationPower``, ``batterySoc``, ``generationTotal``).
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    fields: RawSnapshot = {}


class Sample(BaseModel):
    """A single reconciled telemetry sample.

    Created once per successful collection tick and never mutated.

    Attributes:
        ts_ms: Wall-clock timestamp in milliseconds since the epoch.
        power_w: Instantaneous power after the noise clamp, in watts.
        lifetime_kwh: Reconciled lifetime energy in kWh.
    """

    model_config = ConfigDict(frozen=True)

    ts_ms: int
    power_w: float
    lifetime_kwh: float


class CalibrationState(BaseModel):
    """Reconciler state carried from one tick to the next.

    The accumulator and the emitted high-water mark are separate fields:
    guarding a bad reading changes what is emitted, never what has been
    accumulated.

    Attributes:
        floor_kwh: Operator-supplied calibration floor.
        accumulated_kwh: Energy integrated (or re-anchored from a device
            counter) since the floor was set.
        last_tick_ms: Timestamp of the previous tick, None before the first.
        last_emitted_kwh: Highest lifetime value emitted since the floor
            was set, None before the first tick.
    """

    model_config = ConfigDict(frozen=True)

    floor_kwh: float
    accumulated_kwh: float = 0.0
    last_tick_ms: int | None = None
    last_emitted_kwh: float | None = None

    @classmethod
    def initial(cls, floor_kwh: float) -> CalibrationState:
        """Return a fresh state anchored at *floor_kwh*."""
        return cls(floor_kwh=floor_kwh)


class CachedResult(BaseModel):
    """Last computed collection result, as served to readers.

    Attributes:
        station_name: Station label, empty when never collected.
        current_power_w: Power of the tick in watts.
        total_kwh: Reconciled lifetime energy in kWh.
        battery_soc: Battery state of charge in percent.
        cached_at_ms: When the result was computed.
        mode: How ``total_kwh`` was derived.
    """

    model_config = ConfigDict(frozen=True)

    station_name: str
    current_power_w: float
    total_kwh: float
    battery_soc: float
    cached_at_ms: int
    mode: EnergyMode = EnergyMode.DEFAULT

    @classmethod
    def default(cls, total_kwh: float, now_ms: int) -> CachedResult:
        """Return the zeroed result served when nothing usable is cached."""
        return cls(
            station_name="",
            current_power_w=0.0,
            total_kwh=total_kwh,
            battery_soc=0.0,
            cached_at_ms=now_ms,
        )

    def to_public(self) -> dict:
        """Serialise to the realtime endpoint's response shape."""
        return {
            "station_name": self.station_name,
            "current_power_w": self.current_power_w,
            "total_kwh": round(self.total_kwh, 3),
            "battery_soc": self.battery_soc,
        }
