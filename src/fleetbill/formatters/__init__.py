"""Bill formatters for JSON, CSV, XML, HTML, plain text and PDF output."""

from fleetbill.formatters.common import BillFormattingError
from fleetbill.formatters.dispatch import (
    bill_filename,
    format_bill,
    get_file_info,
    render_bill,
)
from fleetbill.formatters.documents import format_as_html, format_as_text
from fleetbill.formatters.pdf import create_pdf, format_as_pdf
from fleetbill.formatters.structured import format_as_csv, format_as_json, format_as_xml

__all__ = [
    "BillFormattingError",
    "bill_filename",
    "create_pdf",
    "format_as_csv",
    "format_as_html",
    "format_as_json",
    "format_as_pdf",
    "format_as_text",
    "format_as_xml",
    "format_bill",
    "get_file_info",
    "render_bill",
]
