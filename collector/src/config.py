"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded URLs, credentials or calibration values.

CHANGELOG:
- 2026-10-18: Add LOCAL_TIMEZONE for "today" aggregates (STORY-012)
- 2026-10-18: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import math
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class CollectorSettings(BaseSettings):
    """Collector configuration for the Solarman energy bridge.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        solarman_base_url: Solarman OpenAPI base URL (must be HTTPS).
        solarman_app_id: OpenAPI application id.
        solarman_app_secret: OpenAPI application secret.
        solarman_email: Account e-mail used for the token exchange.
        solarman_password: Account password (sent as a sha256 digest).
        solarman_device_sn: Serial number of the inverter/logger device.
            Defaults to the first inverter of the station if not set.
        solarman_station_id: Station to read. Defaults to the first
            station listed for the account when not set.
        base_total_kwh: Operator-supplied lifetime-energy calibration floor.
        noise_floor_w: Wattage below which power readings are clamped to 0.
        poll_interval_s: Seconds between collection ticks (min 10).
        poll_enabled: Run the periodic poll loop. When False, ticks only
            happen on demand through the read cache.
        cache_ttl_s: Freshness window of the read cache in seconds.
        cache_max_stale_s: Oldest cached result served when a refresh fails.
        request_timeout_s: Timeout for one full upstream fetch sequence.
        database_path: SQLite file holding samples and calibration state.
        admin_token: Bearer token required by the recalibration endpoint.
        local_timezone: IANA timezone used to compute local midnight.
        cors_origins: Comma-separated list of allowed CORS origins.
        http_host: Interface the HTTP server binds to.
        http_port: Port the HTTP server listens on.
    """

    solarman_base_url: str
    solarman_app_id: str
    solarman_app_secret: str
    solarman_email: str
    solarman_password: str
    solarman_device_sn: str = ""
    solarman_station_id: int | None = None
    base_total_kwh: float = 0.0
    noise_floor_w: float = 20.0
    poll_interval_s: int = 60
    poll_enabled: bool = True
    cache_ttl_s: float = 30.0
    cache_max_stale_s: float = 600.0
    request_timeout_s: float = 15.0
    database_path: str = "/data/energy.db"
    admin_token: str
    local_timezone: str = "UTC"
    cors_origins: str = ""
    http_host: str = "0.0.0.0"  # noqa: S104
    http_port: int = 8000

    @field_validator("solarman_base_url")
    @classmethod
    def solarman_base_url_must_be_https(cls, v: str) -> str:
        """Validate that the Solarman base URL uses HTTPS."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"SOLARMAN_BASE_URL must use HTTPS (got: '{v[:20]}...')")
        return v.rstrip("/")

    @field_validator("base_total_kwh")
    @classmethod
    def base_total_must_be_valid(cls, v: float) -> float:
        """Validate the calibration floor is a finite non-negative number."""
        if not math.isfinite(v) or v < 0:
            raise ValueError("BASE_TOTAL_KWH must be a finite number >= 0")
        return v

    @field_validator("noise_floor_w")
    @classmethod
    def noise_floor_must_be_non_negative(cls, v: float) -> float:
        """Validate the noise floor is non-negative."""
        if v < 0:
            raise ValueError("NOISE_FLOOR_W must be >= 0")
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_respect_rate_limit(cls, v: int) -> int:
        """Minimum 10-second interval to stay within cloud API rate limits."""
        if v < 10:
            raise ValueError("POLL_INTERVAL_S must be >= 10")
        return v

    @field_validator("cache_ttl_s", "request_timeout_s")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        """Validate durations are strictly positive."""
        if v <= 0:
            raise ValueError("value must be > 0")
        return v

    @field_validator("admin_token")
    @classmethod
    def admin_token_must_not_be_empty(cls, v: str) -> str:
        """Reject an empty admin token, which would disable the guard."""
        if not v.strip():
            raise ValueError("ADMIN_TOKEN must not be empty")
        return v

    @field_validator("local_timezone")
    @classmethod
    def local_timezone_must_exist(cls, v: str) -> str:
        """Validate the timezone name against the IANA database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"LOCAL_TIMEZONE '{v}' is not a known timezone") from exc
        return v

    @model_validator(mode="after")
    def _stale_window_covers_ttl(self) -> CollectorSettings:
        """The stale window must not be shorter than the freshness window."""
        if self.cache_max_stale_s < self.cache_ttl_s:
            raise ValueError("CACHE_MAX_STALE_S must be >= CACHE_TTL_S")
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        """Return the configured CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def tz(self) -> ZoneInfo:
        """Return the configured local timezone."""
        return ZoneInfo(self.local_timezone)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
