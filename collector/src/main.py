"""
Collector poll loop and process entrypoint.

The poll loop runs one collection tick every ``poll_interval_s`` and primes
the read cache with its result.  The loop is resilient: a failed tick is
logged and discarded, and the schedule never stops.  A shared asyncio.Event
ends the loop gracefully after the current iteration.

Structured JSON logging is used for all events.  The process entrypoint
serves the FastAPI application (which owns the poll loop task) with
uvicorn.

CHANGELOG:
- 2026-10-18: Run the loop inside the API lifespan (STORY-013)
- 2026-10-18: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from collector.src.errors import AuthError, FetchError

if TYPE_CHECKING:
    from collector.src.cache import ReadCache
    from collector.src.config import CollectorSettings
    from collector.src.pipeline import Collector

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured JSON logging on the root logger (stderr)."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: CollectorSettings) -> None:
    """Log a config summary at startup, excluding secrets.

    The app secret, account password and admin token are only logged as
    fingerprints.
    """
    logger.info(
        "Collector starting with config: "
        "solarman_base_url=%s, solarman_app_id=%s, solarman_email=%s, "
        "solarman_device_sn=%s, solarman_station_id=%s, "
        "base_total_kwh=%s, noise_floor_w=%s, poll_interval_s=%s, "
        "poll_enabled=%s, cache_ttl_s=%s, cache_max_stale_s=%s, "
        "request_timeout_s=%s, database_path=%s, local_timezone=%s, "
        "app_secret_masked=%s, password_masked=%s, admin_token_masked=%s",
        settings.solarman_base_url,
        settings.solarman_app_id,
        settings.solarman_email,
        settings.solarman_device_sn or "<discover>",
        settings.solarman_station_id,
        settings.base_total_kwh,
        settings.noise_floor_w,
        settings.poll_interval_s,
        settings.poll_enabled,
        settings.cache_ttl_s,
        settings.cache_max_stale_s,
        settings.request_timeout_s,
        settings.database_path,
        settings.local_timezone,
        _masked_token(settings.solarman_app_secret),
        _masked_token(settings.solarman_password),
        _masked_token(settings.admin_token),
    )


# ---------------------------------------------------------------------------
# Single-iteration function (easily testable)
# ---------------------------------------------------------------------------


async def _poll_once(*, collector: Collector, cache: ReadCache | None) -> bool:
    """Execute a single collection tick.

    Catches all exceptions so that the caller's loop is never broken.

    Returns:
        True if the tick produced a sample, False otherwise.
    """
    try:
        result = await collector.collect()
    except AuthError as exc:
        logger.warning("Tick skipped, credential exchange failed: %s", exc)
        return False
    except FetchError as exc:
        logger.warning("Tick skipped, telemetry fetch failed: %s", exc)
        return False
    except Exception:
        logger.error("Tick error", exc_info=True)
        return False

    if cache is not None:
        cache.prime(result)
    return True


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def poll_loop(
    *,
    collector: Collector,
    cache: ReadCache | None,
    poll_interval_s: float,
    shutdown_event: asyncio.Event,
) -> None:
    """Run the poll loop until shutdown_event is set.

    Executes _poll_once, then sleeps for poll_interval_s, checking the
    shutdown event between iterations.
    """
    logger.info("Poll loop started (interval=%ss)", poll_interval_s)
    while not shutdown_event.is_set():
        await _poll_once(collector=collector, cache=cache)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(shutdown_event.wait(), timeout=poll_interval_s)
    logger.info("Poll loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entrypoint: serve the API (and its poll loop) with uvicorn."""
    import uvicorn

    from collector.src.config import CollectorSettings

    configure_logging()
    settings = CollectorSettings()
    uvicorn.run(
        "collector.src.api.main:create_app",
        factory=True,
        host=settings.http_host,
        port=settings.http_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
