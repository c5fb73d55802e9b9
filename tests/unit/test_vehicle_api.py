"""Unit tests for the vehicle telemetry API client."""

from datetime import UTC, datetime

import httpx
import pytest

from fleetbill.integrations.vehicle_api import (
    VehicleAPIClient,
    VehicleAPIError,
    _is_retryable_error,
    format_as_at,
)
from tests.utils import START_AS_AT, vehicle_payload

pytestmark = pytest.mark.unit

BASE_URL = "https://telemetry.example.com"


def make_client(handler, max_attempts: int = 3) -> VehicleAPIClient:
    return VehicleAPIClient(
        base_url=BASE_URL,
        max_attempts=max_attempts,
        backoff_multiplier=0,
        transport=httpx.MockTransport(handler),
    )


def fleet_payload() -> list[dict]:
    return [
        vehicle_payload("V1", 12500000, license_plate="CBDH 789"),
        vehicle_payload("V2", 8000000, license_plate="NOT OURS"),
        vehicle_payload("V3", None, license_plate="86532 AZE", make="Ford", model="Fiesta"),
    ]


def test_format_as_at():
    assert format_as_at(datetime(2021, 2, 1, tzinfo=UTC)) == START_AS_AT
    assert format_as_at(datetime(2021, 2, 28, 23, 59)) == "2021-02-28T23:59:00Z"
    assert format_as_at("2021-02-01T00:00:00Z") == "2021-02-01T00:00:00Z"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (httpx.ConnectError("refused"), True),
        (httpx.ReadTimeout("slow"), True),
        (ValueError("nope"), False),
    ],
)
def test_is_retryable_error(error, expected):
    assert _is_retryable_error(error) is expected


@pytest.mark.parametrize(("status", "expected"), [(429, True), (500, True), (503, True), (404, False)])
def test_is_retryable_status(status, expected):
    request = httpx.Request("GET", BASE_URL)
    response = httpx.Response(status, request=request)
    error = httpx.HTTPStatusError("status", request=request, response=response)
    assert _is_retryable_error(error) is expected


class TestFetchSnapshot:
    """Test cases for history snapshots."""

    @pytest.mark.asyncio
    async def test_filters_to_fleet_and_parses_aliases(self):
        def handler(request):
            return httpx.Response(200, json=fleet_payload())

        async with make_client(handler) as client:
            vehicles = await client.fetch_snapshot(START_AS_AT)

        assert [v.vin for v in vehicles] == ["V1", "V3"]
        assert vehicles[0].license_plate == "CBDH 789"
        assert vehicles[0].state.odometer_in_meters == 12500000
        assert vehicles[0].state.as_at == datetime(2021, 2, 1, tzinfo=UTC)
        assert vehicles[1].state is None

    @pytest.mark.asyncio
    async def test_requests_history_path(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        async with make_client(handler) as client:
            await client.fetch_snapshot(datetime(2021, 2, 1, tzinfo=UTC))

        assert len(seen) == 1
        assert seen[0].method == "GET"
        assert seen[0].url.host == "telemetry.example.com"
        assert seen[0].url.path == "/api/vehicles/history/2021-02-01T00:00:00Z"
        assert seen[0].headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_snapshots_are_cached_per_instant(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(200, json=fleet_payload())

        async with make_client(handler) as client:
            first = await client.fetch_snapshot(START_AS_AT)
            second = await client.fetch_snapshot(datetime(2021, 2, 1, tzinfo=UTC))
            await client.fetch_snapshot("2021-02-28T23:59:00Z")

        assert first == second
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        responses = iter(
            [httpx.Response(503), httpx.Response(200, json=fleet_payload())]
        )
        calls = []

        def handler(request):
            calls.append(1)
            return next(responses)

        async with make_client(handler) as client:
            vehicles = await client.fetch_snapshot(START_AS_AT)

        assert len(calls) == 2
        assert len(vehicles) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(404)

        async with make_client(handler) as client:
            with pytest.raises(VehicleAPIError, match=r"API error \(404\)"):
                await client.fetch_snapshot(START_AS_AT)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(500)

        async with make_client(handler, max_attempts=4) as client:
            with pytest.raises(VehicleAPIError, match=r"API error \(500\)"):
                await client.fetch_snapshot(START_AS_AT)

        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_network_failure(self):
        calls = []

        def handler(request):
            calls.append(1)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler, max_attempts=2) as client:
            with pytest.raises(VehicleAPIError, match="Failed to reach telemetry API"):
                await client.fetch_snapshot(START_AS_AT)

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>not json</html>")

        async with make_client(handler) as client:
            with pytest.raises(VehicleAPIError, match="Invalid JSON"):
                await client.fetch_snapshot(START_AS_AT)

    @pytest.mark.asyncio
    async def test_malformed_payload(self):
        def handler(request):
            return httpx.Response(200, json={"vehicles": "nope"})

        async with make_client(handler) as client:
            with pytest.raises(VehicleAPIError, match="Unexpected vehicle data"):
                await client.fetch_snapshot(START_AS_AT)

    @pytest.mark.asyncio
    async def test_overflowing_odometer_is_rejected(self):
        """A reading that parses to infinity never reaches the calculator."""
        body = (
            b'[{"vin": "V1", "licensePlate": "CBDH 789", "make": "Toyota",'
            b' "model": "Corolla", "state": {"odometerInMeters": 1e400,'
            b' "speedInMph": 0, "asAt": "2021-02-01T00:00:00Z"}}]'
        )

        def handler(request):
            return httpx.Response(
                200, content=body, headers={"content-type": "application/json"}
            )

        async with make_client(handler) as client:
            with pytest.raises(VehicleAPIError, match="Unexpected vehicle data"):
                await client.fetch_snapshot(START_AS_AT)

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self):
        responses = iter(
            [httpx.Response(404), httpx.Response(200, json=fleet_payload())]
        )

        def handler(request):
            return next(responses)

        async with make_client(handler) as client:
            with pytest.raises(VehicleAPIError):
                await client.fetch_snapshot(START_AS_AT)
            vehicles = await client.fetch_snapshot(START_AS_AT)

        assert len(vehicles) == 2


@pytest.mark.asyncio
async def test_list_vehicles():
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(200, json=fleet_payload())

    async with make_client(handler) as client:
        vehicles = await client.list_vehicles()

    assert seen == ["/api/vehicles"]
    assert {v.vin for v in vehicles} == {"V1", "V3"}
