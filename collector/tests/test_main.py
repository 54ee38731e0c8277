"""
Unit tests for the collector poll loop and process helpers.

Tests verify:
- A successful tick primes the read cache.
- Auth, fetch and unexpected errors are logged and never crash the loop.
- Shutdown event stops the loop gracefully.
- The loop keeps ticking after a failed tick.
- Startup logs a config summary without secrets.
- JSON log formatter output.

CHANGELOG:
- 2026-10-18: Initial creation -- TDD tests written first (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from collector.src.config import CollectorSettings
from collector.src.errors import AuthError, FetchError
from collector.src.main import JsonFormatter, _poll_once, log_config_summary, poll_loop
from collector.src.models import CachedResult
from conftest import T0

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _result() -> CachedResult:
    return CachedResult(
        station_name="Home",
        current_power_w=500.0,
        total_kwh=100.5,
        battery_soc=76.0,
        cached_at_ms=T0,
    )


def _make_collector(**collect_kwargs: object) -> MagicMock:
    collector = MagicMock()
    collector.collect = AsyncMock(**collect_kwargs)
    return collector


# ---------------------------------------------------------------------------
# Single iteration
# ---------------------------------------------------------------------------


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_success_primes_cache(self) -> None:
        result = _result()
        collector = _make_collector(return_value=result)
        cache = MagicMock()

        ok = await _poll_once(collector=collector, cache=cache)

        assert ok is True
        cache.prime.assert_called_once_with(result)

    @pytest.mark.asyncio
    async def test_success_without_cache(self) -> None:
        collector = _make_collector(return_value=_result())
        assert await _poll_once(collector=collector, cache=None) is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [AuthError("denied"), FetchError("HTTP 502")])
    async def test_expected_failures_logged_as_warning(
        self, error: Exception, caplog: pytest.LogCaptureFixture
    ) -> None:
        collector = _make_collector(side_effect=error)
        cache = MagicMock()

        with caplog.at_level(logging.WARNING, logger="collector.src.main"):
            ok = await _poll_once(collector=collector, cache=cache)

        assert ok is False
        cache.prime.assert_not_called()
        assert "Tick skipped" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_exception_does_not_crash(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        collector = _make_collector(side_effect=RuntimeError("disk full"))

        with caplog.at_level(logging.ERROR, logger="collector.src.main"):
            ok = await _poll_once(collector=collector, cache=MagicMock())

        assert ok is False
        assert "Tick error" in caplog.text


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_shutdown_stops_loop(self) -> None:
        shutdown_event = asyncio.Event()
        calls = 0

        async def _collect() -> CachedResult:
            nonlocal calls
            calls += 1
            if calls >= 3:
                shutdown_event.set()
            return _result()

        collector = _make_collector(side_effect=_collect)
        cache = MagicMock()

        await asyncio.wait_for(
            poll_loop(
                collector=collector,
                cache=cache,
                poll_interval_s=0.01,
                shutdown_event=shutdown_event,
            ),
            timeout=2.0,
        )

        assert calls == 3
        assert cache.prime.call_count == 3

    @pytest.mark.asyncio
    async def test_loop_continues_after_failed_tick(self) -> None:
        shutdown_event = asyncio.Event()
        outcomes: list[object] = [FetchError("HTTP 502"), AuthError("denied"), _result()]

        async def _collect() -> CachedResult:
            outcome = outcomes.pop(0)
            if not outcomes:
                shutdown_event.set()
            if isinstance(outcome, Exception):
                raise outcome
            return outcome  # type: ignore[return-value]

        collector = _make_collector(side_effect=_collect)
        cache = MagicMock()

        await asyncio.wait_for(
            poll_loop(
                collector=collector,
                cache=cache,
                poll_interval_s=0.01,
                shutdown_event=shutdown_event,
            ),
            timeout=2.0,
        )

        assert collector.collect.await_count == 3
        cache.prime.assert_called_once()

    @pytest.mark.asyncio
    async def test_preset_shutdown_runs_no_tick(self) -> None:
        shutdown_event = asyncio.Event()
        shutdown_event.set()
        collector = _make_collector(return_value=_result())

        await poll_loop(
            collector=collector,
            cache=None,
            poll_interval_s=60,
            shutdown_event=shutdown_event,
        )

        collector.collect.assert_not_awaited()


# ---------------------------------------------------------------------------
# Startup logging
# ---------------------------------------------------------------------------


class TestConfigSummary:
    def test_summary_contains_settings(
        self,
        make_settings: Callable[..., CollectorSettings],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        settings = make_settings(poll_interval_s=120)

        with caplog.at_level(logging.INFO, logger="collector.src.main"):
            log_config_summary(settings)

        assert "https://api.example.com" in caplog.text
        assert "poll_interval_s=120" in caplog.text
        assert "SN-0001" in caplog.text

    def test_summary_does_not_contain_secrets(
        self,
        make_settings: Callable[..., CollectorSettings],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        settings = make_settings(
            solarman_app_secret="app-secret-value",
            solarman_password="pw-value-123",
            admin_token="admin-token-value",
        )

        with caplog.at_level(logging.INFO, logger="collector.src.main"):
            log_config_summary(settings)

        assert "app-secret-value" not in caplog.text
        assert "pw-value-123" not in caplog.text
        assert "admin-token-value" not in caplog.text
        assert "admin_token_masked=len=17" in caplog.text


class TestJsonFormatter:
    def test_formats_record_as_json(self) -> None:
        record = logging.LogRecord(
            name="collector.src.pipeline",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Tick: power=%.1f W",
            args=(500.0,),
            exc_info=None,
        )

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "collector.src.pipeline"
        assert entry["msg"] == "Tick: power=500.0 W"
        assert "ts" in entry
        assert "exception" not in entry

    def test_includes_exception(self) -> None:
        try:
            raise FetchError("HTTP 502")
        except FetchError:
            record = logging.LogRecord(
                name="collector.src.main",
                level=logging.ERROR,
                pathname=__file__,
                lineno=1,
                msg="Tick error",
                args=None,
                exc_info=sys.exc_info(),
            )

        entry = json.loads(JsonFormatter().format(record))

        assert "FetchError: HTTP 502" in entry["exception"]
