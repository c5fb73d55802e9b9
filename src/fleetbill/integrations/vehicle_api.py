"""Client for the vehicle telemetry API.

Endpoints:
    GET /api/vehicles                        all vehicles
    GET /api/vehicles/history/{asAtDateTime} vehicles with state at an instant
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fleetbill.config import DEFAULT_API_BASE_URL, FLEET_LICENSE_PLATES
from fleetbill.models import VehicleRecord

logger = logging.getLogger(__name__)

VEHICLES_ENDPOINT = "/api/vehicles"
VEHICLES_HISTORY_ENDPOINT = "/api/vehicles/history"

_vehicle_list = TypeAdapter(list[VehicleRecord])


class VehicleAPIError(Exception):
    """Raised when vehicle data cannot be fetched or parsed."""


def _is_retryable_error(exception: BaseException) -> bool:
    """Retry on network errors, HTTP 429 and HTTP 5xx; not on other 4xx."""
    if isinstance(exception, httpx.TransportError):
        return True

    if isinstance(exception, httpx.HTTPStatusError):
        status = exception.response.status_code
        return status == 429 or status >= 500

    return False


def format_as_at(as_at: datetime | str) -> str:
    """Render an instant the way the history endpoint expects it (ISO 8601, UTC)."""
    if isinstance(as_at, str):
        return as_at
    if as_at.tzinfo is None:
        as_at = as_at.replace(tzinfo=UTC)
    return as_at.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class VehicleAPIClient:
    """Async client returning fleet-filtered vehicle snapshots.

    Snapshots are cached per instant for the lifetime of the client.
    Use as an async context manager, or call :meth:`aclose` when done.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 30.0,
        max_attempts: int = 3,
        license_plates: Iterable[str] = FLEET_LICENSE_PLATES,
        backoff_multiplier: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Root URL of the telemetry API
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per request for retryable failures
            license_plates: Fleet to keep; other vehicles are dropped
            backoff_multiplier: Scale of the exponential wait between attempts
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.license_plates = frozenset(license_plates)
        self.backoff_multiplier = backoff_multiplier
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._snapshot_cache: dict[str, list[VehicleRecord]] = {}

    async def __aenter__(self) -> "VehicleAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable_error),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=10),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._client.get(path)
                    response.raise_for_status()
                    return response.json()
        except httpx.HTTPStatusError as e:
            raise VehicleAPIError(
                f"API error ({e.response.status_code}) for {path}"
            ) from e
        except httpx.HTTPError as e:
            raise VehicleAPIError(f"Failed to reach telemetry API for {path}: {e}") from e
        except ValueError as e:
            raise VehicleAPIError(f"Invalid JSON from telemetry API for {path}") from e

    def _parse_fleet(self, payload: Any, path: str) -> list[VehicleRecord]:
        try:
            vehicles = _vehicle_list.validate_python(payload)
        except ValidationError as e:
            raise VehicleAPIError(f"Unexpected vehicle data from {path}: {e}") from e
        return [v for v in vehicles if v.license_plate in self.license_plates]

    async def list_vehicles(self) -> list[VehicleRecord]:
        """Fetch the fleet's vehicles (current state, if any).

        Raises:
            VehicleAPIError: If the request fails or the response is malformed
        """
        logger.info("Fetching vehicles from %s", VEHICLES_ENDPOINT)
        payload = await self._get_json(VEHICLES_ENDPOINT)
        return self._parse_fleet(payload, VEHICLES_ENDPOINT)

    async def fetch_snapshot(self, as_at: datetime | str) -> list[VehicleRecord]:
        """Fetch the fleet's vehicles as they were at ``as_at``.

        Args:
            as_at: Instant to query, as a datetime or ISO 8601 string

        Returns:
            Fleet vehicles in API order; ``state`` is None where no reading exists

        Raises:
            VehicleAPIError: If the request fails or the response is malformed
        """
        key = format_as_at(as_at)
        if key in self._snapshot_cache:
            return list(self._snapshot_cache[key])

        path = f"{VEHICLES_HISTORY_ENDPOINT}/{quote(key, safe='')}"
        logger.info("Fetching vehicle history as at %s", key)
        payload = await self._get_json(path)
        vehicles = self._parse_fleet(payload, path)

        self._snapshot_cache[key] = vehicles
        return list(vehicles)
