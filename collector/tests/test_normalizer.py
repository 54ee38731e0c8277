"""
Tests for the power estimator and battery SOC resolution.

Verifies candidate fallback order (station, AC, DC, inverter), the noise
clamp (strictly below the floor -> 0, at or above -> unchanged), and that
the normalizer is a pure function of its inputs.

CHANGELOG:
- 2026-10-18: Initial creation -- TDD tests written first (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import pytest
from collector.src.normalizer import apply_noise_floor, estimate_power, resolve_battery_soc


class TestFallbackOrder:
    def test_dc_before_inverter_when_ac_absent(self) -> None:
        snapshot = {"DPi_t1": "120", "P_INV1": "80"}
        assert estimate_power(snapshot, {}) == 120.0

    def test_ac_wins_regardless_of_dc_and_inverter(self) -> None:
        snapshot = {"APo_t1": "45", "DPi_t1": "500", "P_INV1": "300"}
        assert estimate_power(snapshot, {}) == 45.0

    def test_inverter_is_last_resort(self) -> None:
        assert estimate_power({"P_INV1": "80"}, {}) == 80.0

    def test_station_power_wins_over_device_fields(self) -> None:
        assert estimate_power({"APo_t1": "45"}, {"generationPower": 1234.0}) == 1234.0

    def test_unparsable_ac_falls_through_to_dc(self) -> None:
        assert estimate_power({"APo_t1": "N/A", "DPi_t1": "120,5"}, {}) == 120.5

    def test_nothing_present_is_zero(self) -> None:
        assert estimate_power({"B_left_cap1": "80"}, {}) == 0.0


class TestNoiseClamp:
    def test_below_floor_is_exactly_zero(self) -> None:
        assert estimate_power({"APo_t1": "19.99"}, {}, noise_floor_w=20.0) == 0.0

    def test_at_floor_is_unchanged(self) -> None:
        assert estimate_power({"APo_t1": "20"}, {}, noise_floor_w=20.0) == 20.0

    def test_above_floor_is_unchanged(self) -> None:
        assert estimate_power({"APo_t1": "20.5"}, {}, noise_floor_w=20.0) == 20.5

    def test_negative_reading_is_zero(self) -> None:
        assert estimate_power({"APo_t1": "-5"}, {}) == 0.0

    @pytest.mark.parametrize(("power", "floor", "expected"), [(4.9, 5.0, 0.0), (50.0, 50.0, 50.0)])
    def test_configurable_floor(self, power: float, floor: float, expected: float) -> None:
        assert apply_noise_floor(power, floor) == expected


class TestBatterySoc:
    def test_station_soc_preferred(self) -> None:
        assert resolve_battery_soc({"B_left_cap1": "40"}, {"batterySoc": 81.0}) == 81.0

    def test_device_soc_fallback(self) -> None:
        assert resolve_battery_soc({"B_left_cap1": "40"}, {}) == 40.0

    def test_absent_soc_is_zero(self) -> None:
        assert resolve_battery_soc({}, {}) == 0.0


def test_inputs_are_not_mutated() -> None:
    snapshot = {"APo_t1": "10"}
    station = {"generationPower": None}
    estimate_power(snapshot, station)
    assert snapshot == {"APo_t1": "10"}
    assert station == {"generationPower": None}
