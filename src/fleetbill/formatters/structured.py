"""Machine-readable bill formats: JSON, CSV and XML."""

import csv
import io
import json

from fleetbill.config import CURRENCY_CODE
from fleetbill.formatters.common import format_uk_date, get_template_environment
from fleetbill.models import Bill

CSV_HEADER = [
    "License Plate",
    "VIN",
    "Make",
    "Model",
    "Start Odometer (miles)",
    "End Odometer (miles)",
    "Miles Travelled",
    f"Cost ({CURRENCY_CODE})",
]


def format_as_json(bill: Bill) -> str:
    """Serialize a bill as indented JSON.

    Field names are the model's own. Timestamps are rendered as
    ``DD/MM/YYYY HH:mm`` and money is rounded to 2 decimal places; the
    per-mile rate keeps 3.
    """
    data = bill.model_dump(mode="json")
    data["billing_period_start"] = format_uk_date(bill.billing_period_start)
    data["billing_period_end"] = format_uk_date(bill.billing_period_end)
    data["generated_at"] = format_uk_date(bill.generated_at)
    data["cost_per_mile"] = round(bill.cost_per_mile, 3)
    data["total_miles"] = round(bill.total_miles, 2)
    data["total_cost"] = round(bill.total_cost, 2)
    for vehicle in data["vehicles"]:
        vehicle["cost"] = round(vehicle["cost"], 2)

    return json.dumps(data, indent=2, ensure_ascii=False)


def format_as_csv(bill: Bill) -> str:
    """Serialize a bill as CSV.

    Layout: summary rows, blank line, column header and one row per
    vehicle, then the "Generated on" row.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    period = (
        f"{format_uk_date(bill.billing_period_start)} to "
        f"{format_uk_date(bill.billing_period_end)}"
    )
    writer.writerow(["Customer", bill.customer_name])
    writer.writerow(["Billing Period", period])
    writer.writerow(["Total Miles", f"{bill.total_miles:.2f}"])
    writer.writerow([f"Cost Per Mile ({CURRENCY_CODE})", f"{bill.cost_per_mile:.3f}"])
    writer.writerow([f"Total Cost ({CURRENCY_CODE})", f"{bill.total_cost:.2f}"])
    writer.writerow([])

    writer.writerow(CSV_HEADER)
    for vehicle in bill.vehicles:
        writer.writerow(
            [
                vehicle.license_plate,
                vehicle.vin,
                vehicle.make,
                vehicle.model,
                f"{vehicle.start_odometer_miles:.2f}",
                f"{vehicle.end_odometer_miles:.2f}",
                f"{vehicle.miles_travelled:.2f}",
                f"{vehicle.cost:.2f}",
            ]
        )
    writer.writerow(["Generated on", format_uk_date(bill.generated_at)])
    return buffer.getvalue()


def format_as_xml(bill: Bill) -> str:
    """Serialize a bill as an XML document with a ``<bill>`` root."""
    template = get_template_environment().get_template("bill.xml")
    return template.render(bill=bill)
