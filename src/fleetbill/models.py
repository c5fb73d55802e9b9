"""Data models for vehicle snapshots, bills and rendered output."""

from collections.abc import Sequence
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class VehicleState(BaseModel):
    """Telemetry reading for a vehicle at one instant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    odometer_in_meters: float = Field(..., ge=0, allow_inf_nan=False, alias="odometerInMeters")
    speed_in_mph: float = Field(0.0, alias="speedInMph")
    as_at: datetime = Field(..., alias="asAt")


class VehicleRecord(BaseModel):
    """A vehicle as reported by the telemetry API.

    ``state`` is None when the provider had no reading at the requested time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vin: str
    license_plate: str = Field(..., alias="licensePlate")
    make: str
    model: str
    state: VehicleState | None = None


# All vehicles as observed at one instant, in API order
Snapshot = Sequence[VehicleRecord]


class BillLineItem(BaseModel):
    """One vehicle's row on a bill. Distances in miles, cost in GBP."""

    model_config = ConfigDict(frozen=True)

    license_plate: str
    vin: str
    make: str
    model: str
    start_odometer_miles: float
    end_odometer_miles: float
    miles_travelled: float = Field(..., ge=0)
    cost: float = Field(..., ge=0)


class Bill(BaseModel):
    """A complete bill for one customer and billing period."""

    model_config = ConfigDict(frozen=True)

    billing_period_start: datetime
    billing_period_end: datetime
    customer_name: str
    cost_per_mile: float
    vehicles: tuple[BillLineItem, ...] = ()
    total_miles: float = 0.0
    total_cost: float = 0.0
    generated_at: datetime


class NoticeKind(str, Enum):
    """Kinds of data-quality problems tolerated while billing."""

    MISSING_START_VEHICLE = "missing_start_vehicle"
    MISSING_STATE = "missing_state"
    NEGATIVE_DISTANCE = "negative_distance"


class BillingNotice(BaseModel):
    """A vehicle that was skipped or corrected while building a bill."""

    model_config = ConfigDict(frozen=True)

    kind: NoticeKind
    vin: str
    message: str


class BillingResult(BaseModel):
    """A bill together with the data-quality notices raised building it."""

    model_config = ConfigDict(frozen=True)

    bill: Bill
    notices: tuple[BillingNotice, ...] = ()

    def skipped_vins(self) -> list[str]:
        """VINs left off the bill entirely."""
        return [
            notice.vin
            for notice in self.notices
            if notice.kind is not NoticeKind.NEGATIVE_DISTANCE
        ]


class BillFormat(str, Enum):
    """Supported bill output formats."""

    JSON = "json"
    CSV = "csv"
    PDF = "pdf"
    HTML = "html"
    TEXT = "text"
    XML = "xml"


class FileInfo(BaseModel):
    """File extension and MIME type for a rendered bill."""

    model_config = ConfigDict(frozen=True)

    extension: str
    mime_type: str


class FormattedBill(BaseModel):
    """A bill rendered in one format.

    Attributes:
        format: The format actually produced (JSON when an unknown one was asked for)
        content: Rendered text, or a base64 data URI for PDF
        file_info: Extension and MIME type matching ``format``
    """

    model_config = ConfigDict(frozen=True)

    format: BillFormat
    content: str
    file_info: FileInfo
