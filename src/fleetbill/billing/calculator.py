"""
Mileage billing calculations.

Reconciles a start-of-period and end-of-period fleet snapshot by VIN and
turns the odometer deltas into a priced bill. Data problems never fail a
run: affected vehicles are skipped or billed at zero miles and reported
as notices.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from fleetbill.billing.cache import BillCache
from fleetbill.config import (
    COST_PER_MILE,
    CUSTOMER_NAME,
    FLEET_LICENSE_PLATES,
    METERS_PER_MILE,
)
from fleetbill.models import (
    Bill,
    BillingNotice,
    BillingResult,
    BillLineItem,
    NoticeKind,
    Snapshot,
    VehicleRecord,
)

logger = logging.getLogger(__name__)

_TWO_PLACES = Decimal("0.01")


def round_half_up(value: float, places: int = 2) -> float:
    """Round to ``places`` decimals, ties away from zero.

    Works on the exact binary value of ``value`` (``Decimal(value)``, not
    ``Decimal(str(value))``), so 1.005 rounds to 1.0 just as it does with
    JavaScript's ``toFixed``.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def meters_to_miles(meters: float) -> float:
    """Convert meters to miles, rounded to 2 decimal places."""
    return round_half_up(meters / METERS_PER_MILE, 2)


def calculate_miles_travelled(
    start_odometer: float | None, end_odometer: float | None
) -> float:
    """Miles travelled between two odometer readings in meters.

    Returns 0 when a reading is missing or not finite, or the odometer
    went backwards.
    """
    if start_odometer is None or end_odometer is None:
        logger.warning("Missing odometer reading, assuming 0 miles travelled")
        return 0.0

    if not (math.isfinite(start_odometer) and math.isfinite(end_odometer)):
        logger.warning(
            "Non-finite odometer reading (%s -> %s), assuming 0 miles travelled",
            start_odometer,
            end_odometer,
        )
        return 0.0

    meters_travelled = end_odometer - start_odometer
    if meters_travelled < 0:
        logger.warning(
            "Negative distance (%s meters), assuming 0 miles travelled",
            meters_travelled,
        )
        return 0.0

    return meters_to_miles(meters_travelled)


def calculate_cost(miles_travelled: float, cost_per_mile: float = COST_PER_MILE) -> float:
    """Cost in GBP for a distance, rounded to 2 decimal places."""
    return round_half_up(miles_travelled * cost_per_mile, 2)


def filter_fleet(
    snapshot: Iterable[VehicleRecord],
    license_plates: Iterable[str] = FLEET_LICENSE_PLATES,
) -> list[VehicleRecord]:
    """Keep only vehicles whose license plate is in the fleet, preserving order."""
    plates = set(license_plates)
    return [vehicle for vehicle in snapshot if vehicle.license_plate in plates]


class BillingCalculator:
    """Builds bills for one customer at a flat per-mile rate.

    Results are cached by the value of the four inputs, so the generation
    timestamp of a bill reflects the first time those inputs were billed.
    """

    def __init__(
        self,
        customer_name: str = CUSTOMER_NAME,
        license_plates: Sequence[str] = FLEET_LICENSE_PLATES,
        cost_per_mile: float = COST_PER_MILE,
        cache: BillCache[BillingResult] | None = None,
    ) -> None:
        self.customer_name = customer_name
        self.license_plates = tuple(license_plates)
        self.cost_per_mile = cost_per_mile
        self.cache: BillCache[BillingResult] = cache if cache is not None else BillCache()

    def generate_bill(
        self,
        start_vehicles: Snapshot,
        end_vehicles: Snapshot,
        start_date: datetime | str,
        end_date: datetime | str,
    ) -> BillingResult:
        """Generate (or fetch from cache) the bill for a billing period.

        Args:
            start_vehicles: Fleet snapshot at the start of the period
            end_vehicles: Fleet snapshot at the end of the period
            start_date: Start of the billing period
            end_date: End of the billing period

        Returns:
            BillingResult with the bill and any data-quality notices
        """
        start_snapshot = tuple(start_vehicles)
        end_snapshot = tuple(end_vehicles)
        key = (start_snapshot, end_snapshot, start_date, end_date)

        return self.cache.get_or_compute(
            key,
            lambda: self._compute(start_snapshot, end_snapshot, start_date, end_date),
        )

    def _compute(
        self,
        start_vehicles: Snapshot,
        end_vehicles: Snapshot,
        start_date: datetime | str,
        end_date: datetime | str,
    ) -> BillingResult:
        fleet_start = filter_fleet(start_vehicles, self.license_plates)
        fleet_end = filter_fleet(end_vehicles, self.license_plates)

        # First occurrence wins if the API ever repeats a VIN
        start_by_vin: dict[str, VehicleRecord] = {}
        for vehicle in fleet_start:
            start_by_vin.setdefault(vehicle.vin, vehicle)

        line_items: list[BillLineItem] = []
        notices: list[BillingNotice] = []
        total_miles = Decimal(0)
        total_cost = Decimal(0)

        for end_vehicle in fleet_end:
            start_vehicle = start_by_vin.get(end_vehicle.vin)

            if start_vehicle is None:
                message = f"No start-of-period data for vehicle {end_vehicle.vin}, skipping"
                logger.warning(message)
                notices.append(
                    BillingNotice(
                        kind=NoticeKind.MISSING_START_VEHICLE,
                        vin=end_vehicle.vin,
                        message=message,
                    )
                )
                continue

            if start_vehicle.state is None or end_vehicle.state is None:
                message = f"Missing state data for vehicle {end_vehicle.vin}, skipping"
                logger.warning(message)
                notices.append(
                    BillingNotice(
                        kind=NoticeKind.MISSING_STATE,
                        vin=end_vehicle.vin,
                        message=message,
                    )
                )
                continue

            start_odometer = start_vehicle.state.odometer_in_meters
            end_odometer = end_vehicle.state.odometer_in_meters

            if end_odometer < start_odometer:
                notices.append(
                    BillingNotice(
                        kind=NoticeKind.NEGATIVE_DISTANCE,
                        vin=end_vehicle.vin,
                        message=(
                            f"Odometer for vehicle {end_vehicle.vin} went backwards "
                            f"({start_odometer} -> {end_odometer} meters), billed as 0 miles"
                        ),
                    )
                )

            miles_travelled = calculate_miles_travelled(start_odometer, end_odometer)
            cost = calculate_cost(miles_travelled, self.cost_per_mile)

            # Totals are sums of the already-rounded line values
            total_miles += Decimal(str(miles_travelled))
            total_cost += Decimal(str(cost))

            line_items.append(
                BillLineItem(
                    license_plate=end_vehicle.license_plate,
                    vin=end_vehicle.vin,
                    make=end_vehicle.make,
                    model=end_vehicle.model,
                    start_odometer_miles=meters_to_miles(start_odometer),
                    end_odometer_miles=meters_to_miles(end_odometer),
                    miles_travelled=miles_travelled,
                    cost=cost,
                )
            )

        bill = Bill(
            billing_period_start=start_date,
            billing_period_end=end_date,
            customer_name=self.customer_name,
            cost_per_mile=self.cost_per_mile,
            vehicles=tuple(line_items),
            total_miles=float(total_miles.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)),
            total_cost=float(total_cost.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)),
            generated_at=datetime.now(UTC),
        )

        return BillingResult(bill=bill, notices=tuple(notices))


_default_calculator = BillingCalculator()


def generate_bill(
    start_vehicles: Snapshot,
    end_vehicles: Snapshot,
    start_date: datetime | str,
    end_date: datetime | str,
) -> BillingResult:
    """Generate the bill for the fleet using the process-wide cached calculator."""
    return _default_calculator.generate_bill(
        start_vehicles, end_vehicles, start_date, end_date
    )


def clear_bill_cache() -> None:
    """Forget every bill generated through :func:`generate_bill`."""
    _default_calculator.cache.clear()
