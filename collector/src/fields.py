"""
Solarman telemetry field catalogue and resolver -- single source of truth.

Defines the ordered candidate fields consulted for instantaneous power,
the lifetime-energy counter and the battery state of charge, plus the one
generic "first present wins" routine that walks a candidate list.  Adding
or reordering a source is a change to the lists below, not to control flow.

Raw values arrive as strings or numbers.  Strings may use either ``.`` or
``,`` as decimal separator (the cloud API formats some values with the
account's locale).

References:
    - Solarman OpenAPI ``/device/v1.0/currentData`` data keys (Sofar/Deye)
    - Solarman OpenAPI ``/station/v1.0/list`` station attributes

CHANGELOG:
- 2026-10-18: Add station-level candidates ahead of device fields (STORY-005)
- 2026-10-18: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from collector.src.errors import ParseError

logger = logging.getLogger(__name__)

STATION = "station"
DEVICE = "device"


@dataclass(frozen=True, slots=True)
class FieldDef:
    """Definition of a single candidate telemetry field.

    Attributes:
        key: Field name as it appears in the raw mapping.
        source: Where the field lives -- ``"station"`` for the station
            summary, ``"device"`` for the device snapshot.
        unit: Engineering unit after scaling.
        scale: Multiplicative factor applied to the parsed value.
        description: Free-text description of the field.
    """

    key: str
    source: str
    unit: str
    scale: float = 1.0
    description: str = ""


# ---------------------------------------------------------------------------
# Candidate lists (ordered: first present wins)
# ---------------------------------------------------------------------------

POWER_CANDIDATES: tuple[FieldDef, ...] = (
    FieldDef("generationPower", STATION, "W", description="Station generation power"),
    FieldDef("APo_t1", DEVICE, "W", description="Total AC output (injected) power"),
    FieldDef("DPi_t1", DEVICE, "W", description="Total DC input (panel) power"),
    FieldDef("P_INV1", DEVICE, "W", description="Inverter output power (legacy)"),
)

LIFETIME_CANDIDATES: tuple[FieldDef, ...] = (
    FieldDef("Et_ge0", DEVICE, "kWh", description="Cumulative production counter"),
    FieldDef("generationTotal", STATION, "kWh", description="Station lifetime generation"),
)

BATTERY_SOC_CANDIDATES: tuple[FieldDef, ...] = (
    FieldDef("batterySoc", STATION, "%", description="Station battery SOC"),
    FieldDef("B_left_cap1", DEVICE, "%", description="Battery remaining capacity"),
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_number(raw: object) -> float:
    """Coerce a raw telemetry value to a finite float.

    Accepts ints, floats and strings using ``.`` or ``,`` as decimal
    separator.  Booleans are rejected.

    Raises:
        ParseError: If the value is missing, empty, non-numeric or not finite.
    """
    if raw is None or isinstance(raw, bool):
        raise ParseError(f"not a number: {raw!r}")
    if isinstance(raw, int | float):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip().replace(",", ".")
        if not text:
            raise ParseError("empty value")
        try:
            value = float(text)
        except ValueError as exc:
            raise ParseError(f"not a number: {raw!r}") from exc
    else:
        raise ParseError(f"unsupported value type: {type(raw).__name__}")

    if not math.isfinite(value):
        raise ParseError(f"not finite: {raw!r}")
    return value


def resolve(snapshot: Mapping[str, object], field_name: str) -> float | None:
    """Return the numeric value of *field_name*, or None when absent.

    Missing and unparsable fields both resolve to ``None``; this function
    never raises.
    """
    if field_name not in snapshot:
        return None
    try:
        return parse_number(snapshot[field_name])
    except ParseError as exc:
        logger.warning("Field '%s' unparsable, treating as absent: %s", field_name, exc)
        return None


def first_present(
    candidates: Sequence[FieldDef],
    *,
    station: Mapping[str, object],
    device: Mapping[str, object],
) -> tuple[FieldDef, float] | None:
    """Walk *candidates* in order and return the first resolvable one.

    Args:
        candidates: Ordered candidate field definitions.
        station: Raw station-level fields.
        device: Raw device snapshot.

    Returns:
        ``(field_def, scaled_value)`` for the first present candidate, or
        ``None`` when no candidate resolves.
    """
    sources = {STATION: station, DEVICE: device}
    for field_def in candidates:
        value = resolve(sources[field_def.source], field_def.key)
        if value is not None:
            return field_def, value * field_def.scale
    return None
