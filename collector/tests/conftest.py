"""
Shared test fixtures for collector tests.

Provides environment isolation for CollectorSettings, a settings factory
for building explicit test configurations, and a mock Solarman client
factory used by pipeline, main loop and API tests.

CHANGELOG:
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from collector.src.config import CollectorSettings
from collector.src.models import StationSummary

# All CollectorSettings environment variable names, used for cleanup.
_ALL_COLLECTOR_ENV_VARS = (
    "SOLARMAN_BASE_URL",
    "SOLARMAN_APP_ID",
    "SOLARMAN_APP_SECRET",
    "SOLARMAN_EMAIL",
    "SOLARMAN_PASSWORD",
    "SOLARMAN_DEVICE_SN",
    "SOLARMAN_STATION_ID",
    "BASE_TOTAL_KWH",
    "NOISE_FLOOR_W",
    "POLL_INTERVAL_S",
    "POLL_ENABLED",
    "CACHE_TTL_S",
    "CACHE_MAX_STALE_S",
    "REQUEST_TIMEOUT_S",
    "DATABASE_PATH",
    "ADMIN_TOKEN",
    "LOCAL_TIMEZONE",
    "CORS_ORIGINS",
    "HTTP_HOST",
    "HTTP_PORT",
)

T0 = 1_760_000_000_000
"""Arbitrary fixed tick timestamp (epoch ms) for deterministic tests."""

HOUR_MS = 3_600_000


@pytest.fixture(autouse=True)
def _clean_collector_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all collector env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_COLLECTOR_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables (no optional ones)."""
    env = {
        "SOLARMAN_BASE_URL": "https://globalapi.solarmanpv.com/",
        "SOLARMAN_APP_ID": "2024000001",
        "SOLARMAN_APP_SECRET": "app-secret-xyz",
        "SOLARMAN_EMAIL": "owner@example.com",
        "SOLARMAN_PASSWORD": "hunter2",
        "ADMIN_TOKEN": "admin-secret",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def make_settings(tmp_path: Path) -> Callable[..., CollectorSettings]:
    """Return a factory building CollectorSettings with test defaults."""

    def _make(**overrides: object) -> CollectorSettings:
        values: dict[str, object] = {
            "solarman_base_url": "https://api.example.com",
            "solarman_app_id": "app-1",
            "solarman_app_secret": "app-secret",
            "solarman_email": "owner@example.com",
            "solarman_password": "hunter2",
            "solarman_device_sn": "SN-0001",
            "base_total_kwh": 100.0,
            "poll_enabled": False,
            "database_path": str(tmp_path / "energy.db"),
            "admin_token": "admin-secret",
        }
        values.update(overrides)
        return CollectorSettings(**values)

    return _make


def make_client(
    *,
    station_fields: dict | None = None,
    snapshot: dict | None = None,
    station_name: str = "Home",
) -> AsyncMock:
    """Create a mock Solarman client returning fixed telemetry."""
    client = AsyncMock()
    client.fetch_credential = AsyncMock(return_value="token-abc")
    client.fetch_station_summary = AsyncMock(
        return_value=StationSummary(id=7, name=station_name, fields=station_fields or {})
    )
    client.fetch_device_snapshot = AsyncMock(return_value=snapshot or {})
    return client
