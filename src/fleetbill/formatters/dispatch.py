"""Format selection for rendered bills."""

import logging
import re

from fleetbill.formatters.common import FILE_FORMATS
from fleetbill.formatters.documents import format_as_html, format_as_text
from fleetbill.formatters.pdf import format_as_pdf
from fleetbill.formatters.structured import format_as_csv, format_as_json, format_as_xml
from fleetbill.models import Bill, BillFormat, FileInfo, FormattedBill

logger = logging.getLogger(__name__)


def parse_format(value: BillFormat | str) -> BillFormat | None:
    """Map a format name (case-insensitive) to a BillFormat, or None if unknown."""
    if isinstance(value, BillFormat):
        return value
    try:
        return BillFormat(str(value).strip().lower())
    except ValueError:
        return None


def get_file_info(bill_format: BillFormat | str) -> FileInfo:
    """File extension and MIME type for a format.

    Unknown formats get the plain text entry.
    """
    resolved = parse_format(bill_format)
    if resolved is None:
        return FILE_FORMATS[BillFormat.TEXT]
    return FILE_FORMATS[resolved]


def resolve_format(bill_format: BillFormat | str) -> BillFormat:
    """The format that will actually be rendered; unknown formats become JSON."""
    resolved = parse_format(bill_format)
    if resolved is None:
        logger.warning("Unsupported format: %s, defaulting to JSON", bill_format)
        return BillFormat.JSON
    return resolved


async def format_bill(
    bill: Bill, bill_format: BillFormat | str, pdf_timeout: float | None = None
) -> str:
    """Render a bill in the requested format.

    Args:
        bill: The bill to render
        bill_format: One of the BillFormat values; anything else renders JSON
        pdf_timeout: Seconds allowed for PDF rendering, or None for no limit

    Returns:
        The rendered text (a base64 data URI for PDF)

    Raises:
        BillFormattingError: If a PDF cannot be produced
    """
    resolved = resolve_format(bill_format)

    if resolved is BillFormat.JSON:
        return format_as_json(bill)
    if resolved is BillFormat.CSV:
        return format_as_csv(bill)
    if resolved is BillFormat.PDF:
        return await format_as_pdf(bill, timeout=pdf_timeout)
    if resolved is BillFormat.HTML:
        return format_as_html(bill)
    if resolved is BillFormat.XML:
        return format_as_xml(bill)
    if resolved is BillFormat.TEXT:
        return format_as_text(bill)

    raise AssertionError(f"Unhandled bill format: {resolved}")


async def render_bill(
    bill: Bill, bill_format: BillFormat | str, pdf_timeout: float | None = None
) -> FormattedBill:
    """Render a bill and attach the file info of the format produced."""
    resolved = resolve_format(bill_format)
    content = await format_bill(bill, resolved, pdf_timeout=pdf_timeout)
    return FormattedBill(
        format=resolved, content=content, file_info=FILE_FORMATS[resolved]
    )


def bill_filename(bill: Bill, bill_format: BillFormat | str) -> str:
    """Download name, e.g. ``bobs_taxis_bill_2021-02-01_to_2021-02-28.pdf``."""
    extension = get_file_info(bill_format).extension
    customer = re.sub(r"[^a-z0-9]+", "_", bill.customer_name.lower().replace("'", "")).strip("_")
    start = bill.billing_period_start.date().isoformat()
    end = bill.billing_period_end.date().isoformat()
    return f"{customer}_bill_{start}_to_{end}.{extension}"
