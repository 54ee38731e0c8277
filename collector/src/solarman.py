"""
HTTPS client for the Solarman OpenAPI.

Implements the three upstream calls a collection tick needs:

- fetch_credential(): exchange app id/secret and account credentials for a
  bearer access token.
- fetch_station_summary(credential): list stations and return the
  configured (or first) one with its raw station-level fields.
- fetch_device_snapshot(credential, station_id): read the device's live
  ``dataList`` and return it as an ordered key -> value mapping.

Every call uses a fresh ``httpx.AsyncClient`` with TLS certificate
verification always enabled. Transport errors, non-200 responses and
``success: false`` payloads raise AuthError (token exchange) or FetchError
(station/device queries).

CHANGELOG:
- 2026-10-18: Discover the inverter serial from the station when not configured (STORY-007)
- 2026-10-18: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import hashlib
import logging

import httpx

from collector.src.errors import AuthError, CollectorError, FetchError
from collector.src.models import RawSnapshot, StationSummary

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_S = 10.0
_INVERTER_DEVICE_TYPE = "INVERTER"


class SolarmanClient:
    """Async client for the Solarman OpenAPI.

    The client holds no token: the caller fetches a fresh credential on
    every tick and passes it to the query methods.

    Args:
        base_url: Solarman OpenAPI base URL. Must start with ``https://``.
        app_id: OpenAPI application id.
        app_secret: OpenAPI application secret.
        email: Account e-mail.
        password: Account password in clear text; only its sha256 digest
            is ever sent.
        device_sn: Inverter/logger serial. When empty, the first inverter
            of the station is used.
        station_id: Station to read. When None, the first listed station.
        timeout_s: Timeout per HTTP request in seconds.

    Raises:
        ValueError: If *base_url* does not start with ``https://``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        app_id: str,
        app_secret: str,
        email: str,
        password: str,
        device_sn: str = "",
        station_id: int | None = None,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if not base_url.lower().startswith("https://"):
            raise ValueError(f"Solarman base URL must use HTTPS (got: '{base_url}').")
        self._base_url = base_url.rstrip("/")
        self._app_id = app_id
        self._app_secret = app_secret
        self._email = email
        self._password_hash = hashlib.sha256(password.encode("utf-8")).hexdigest()
        self._device_sn = device_sn
        self._station_id = station_id
        self._timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_credential(self) -> str:
        """Exchange configured credentials for a bearer access token.

        Returns:
            The access token string.

        Raises:
            AuthError: If the exchange fails for any reason.
        """
        data = await self._post(
            "/account/v1.0/token",
            params={"appId": self._app_id, "language": "en"},
            body={
                "appSecret": self._app_secret,
                "email": self._email,
                "password": self._password_hash,
            },
            error_cls=AuthError,
        )
        token = data.get("access_token")
        if not token:
            raise AuthError("Token response carried no access_token")
        return str(token)

    async def fetch_station_summary(self, credential: str) -> StationSummary:
        """Return the configured station, or the first listed one.

        Raises:
            FetchError: If the query fails or no matching station exists.
        """
        data = await self._post(
            "/station/v1.0/list",
            body={"page": 1, "size": 20},
            token=credential,
            error_cls=FetchError,
        )
        stations = data.get("stationList") or []
        for item in stations:
            if not isinstance(item, dict) or "id" not in item:
                continue
            if self._station_id is None or _as_int(item["id"]) == self._station_id:
                return StationSummary(
                    id=_as_int(item["id"]),
                    name=str(item.get("name") or ""),
                    fields={k: v for k, v in item.items() if _is_scalar(v)},
                )
        raise FetchError(
            f"Station {self._station_id} not found"
            if self._station_id is not None
            else "Account lists no station"
        )

    async def fetch_device_snapshot(self, credential: str, station_id: int) -> RawSnapshot:
        """Return the device's live readings as an ordered mapping.

        An empty ``dataList`` yields an empty mapping, not an error.

        Raises:
            FetchError: If the query fails.
        """
        device_sn = self._device_sn or await self._discover_device_sn(credential, station_id)
        data = await self._post(
            "/device/v1.0/currentData",
            body={"deviceSn": device_sn},
            token=credential,
            error_cls=FetchError,
        )
        snapshot: RawSnapshot = {}
        for item in data.get("dataList") or []:
            if isinstance(item, dict) and item.get("key"):
                snapshot[str(item["key"])] = item.get("value")
        if not snapshot:
            logger.warning("Device %s returned an empty dataList", device_sn)
        return snapshot

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _discover_device_sn(self, credential: str, station_id: int) -> str:
        """Return the serial of the first inverter attached to *station_id*."""
        data = await self._post(
            "/station/v1.0/device",
            body={"stationId": station_id, "page": 1, "size": 20},
            token=credential,
            error_cls=FetchError,
        )
        for item in data.get("deviceListItems") or []:
            if not isinstance(item, dict):
                continue
            if item.get("deviceType") == _INVERTER_DEVICE_TYPE and item.get("deviceSn"):
                self._device_sn = str(item["deviceSn"])
                logger.info("Discovered inverter %s on station %d", self._device_sn, station_id)
                return self._device_sn
        raise FetchError(f"Station {station_id} has no inverter device")

    async def _post(
        self,
        path: str,
        *,
        body: dict,
        error_cls: type[CollectorError],
        params: dict | None = None,
        token: str | None = None,
    ) -> dict:
        """POST *body* to *path* and return the decoded success payload."""
        headers = {"Content-Type": "application/json"}
        if token is not None:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout_s) as client:
                response = await client.post(
                    f"{self._base_url}{path}",
                    params=params,
                    json=body,
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise error_cls(f"{path} request failed: {exc}") from exc

        if response.status_code != 200:
            raise error_cls(f"{path} returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise error_cls(f"{path} returned invalid JSON") from exc

        if not isinstance(data, dict) or data.get("success") is False:
            msg = data.get("msg") if isinstance(data, dict) else None
            raise error_cls(f"{path} unsuccessful: {msg or 'no message'}")
        return data


def _as_int(value: object) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise FetchError(f"Invalid station id: {value!r}") from exc


def _is_scalar(value: object) -> bool:
    return value is None or isinstance(value, str | int | float)
