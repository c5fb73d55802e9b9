import re
from datetime import UTC, datetime

from fleetbill.models import Bill, BillLineItem, VehicleRecord, VehicleState

START_AS_AT = "2021-02-01T00:00:00Z"
END_AS_AT = "2021-02-28T23:59:00Z"


def clean_cli_output(output: str) -> str:
    """
    Remove ANSI escape codes, Rich formatting characters, whitespace, and newlines
    from CLI output to make assertions robust against terminal wrapping.
    """
    # 1. Remove ANSI escape codes
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    output = ansi_escape.sub("", output)

    # 2. Remove:
    # \s - all whitespace (space, tab, newline, etc.)
    # │, ╭, ╮, ╰, ╯, ─ - Rich box characters
    return re.sub(r"[\s│╭╮╰╯─]", "", output)


def make_vehicle(
    vin: str,
    odometer: float | None,
    license_plate: str = "CBDH 789",
    make: str = "Toyota",
    model: str = "Corolla",
    as_at: str | datetime = START_AS_AT,
) -> VehicleRecord:
    """Build a vehicle record; ``odometer=None`` means no state reading."""
    state = None
    if odometer is not None:
        state = VehicleState(odometer_in_meters=odometer, speed_in_mph=0.0, as_at=as_at)
    return VehicleRecord(
        vin=vin, license_plate=license_plate, make=make, model=model, state=state
    )


def vehicle_payload(
    vin: str,
    odometer: float | None,
    license_plate: str = "CBDH 789",
    make: str = "Toyota",
    model: str = "Corolla",
    as_at: str = START_AS_AT,
) -> dict:
    """The JSON shape returned by the telemetry API for one vehicle."""
    state = None
    if odometer is not None:
        state = {"odometerInMeters": odometer, "speedInMph": 0, "asAt": as_at}
    return {
        "vin": vin,
        "licensePlate": license_plate,
        "make": make,
        "model": model,
        "state": state,
    }


def make_bill(customer_name: str = "Bob's Taxis", vehicles=None) -> Bill:
    """A two-vehicle bill with fixed timestamps."""
    if vehicles is None:
        vehicles = (
            BillLineItem(
                license_plate="CBDH 789",
                vin="JH4DB7540SS801338",
                make="Toyota",
                model="Corolla",
                start_odometer_miles=12500,
                end_odometer_miles=13200,
                miles_travelled=700,
                cost=144.9,
            ),
            BillLineItem(
                license_plate="86532 AZE",
                vin="JTHBJ46G992339158",
                make="Ford",
                model="Fiesta",
                start_odometer_miles=8000,
                end_odometer_miles=8550,
                miles_travelled=550,
                cost=113.85,
            ),
        )
    return Bill(
        billing_period_start=datetime(2021, 2, 1, tzinfo=UTC),
        billing_period_end=datetime(2021, 2, 28, 23, 59, tzinfo=UTC),
        customer_name=customer_name,
        cost_per_mile=0.207,
        vehicles=tuple(vehicles),
        total_miles=sum(v.miles_travelled for v in vehicles),
        total_cost=round(sum(v.cost for v in vehicles), 2),
        generated_at=datetime(2023, 4, 25, 14, 30, tzinfo=UTC),
    )
