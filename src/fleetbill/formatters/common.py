"""Display helpers and the template environment shared by the formatters."""

import base64
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from xml.sax.saxutils import escape

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from fleetbill.config import CURRENCY_SYMBOL
from fleetbill.models import BillFormat, FileInfo

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

UK_DATE_TIME_FORMAT = "%d/%m/%Y %H:%M"

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


class BillFormattingError(Exception):
    """Raised when a bill cannot be rendered at all."""


def format_uk_date(value: datetime) -> str:
    """Format a timestamp as ``DD/MM/YYYY HH:mm`` in UTC.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(UK_DATE_TIME_FORMAT)


def format_currency(value: float) -> str:
    """``12.5`` -> ``£12.50``"""
    return f"{CURRENCY_SYMBOL}{value:.2f}"


def format_rate(value: float) -> str:
    """Per-mile rates keep a third decimal: ``0.207`` -> ``£0.207``."""
    return f"{CURRENCY_SYMBOL}{value:.3f}"


def format_miles(value: float) -> str:
    return f"{value:.2f}"


def escape_xml(value: object) -> str:
    """Escape ``& < > " '`` for XML text and attribute content."""
    if value is None:
        return ""
    return escape(str(value), _XML_ENTITIES)


@lru_cache(maxsize=1)
def get_template_environment() -> Environment:
    """Jinja2 environment for the bill templates.

    Only ``.html`` templates are autoescaped; the XML template escapes
    explicitly with the ``xml`` filter so apostrophes become ``&apos;``.
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html",), default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["uk_date"] = format_uk_date
    env.filters["currency"] = format_currency
    env.filters["rate"] = format_rate
    env.filters["miles"] = format_miles
    env.filters["xml"] = escape_xml
    return env


FILE_FORMATS: dict[BillFormat, FileInfo] = {
    BillFormat.PDF: FileInfo(extension="pdf", mime_type="application/pdf"),
    BillFormat.JSON: FileInfo(extension="json", mime_type="application/json"),
    BillFormat.CSV: FileInfo(extension="csv", mime_type="text/csv"),
    BillFormat.HTML: FileInfo(extension="html", mime_type="text/html"),
    BillFormat.XML: FileInfo(extension="xml", mime_type="application/xml"),
    BillFormat.TEXT: FileInfo(extension="txt", mime_type="text/plain"),
}


def encode_data_uri(payload: bytes, mime_type: str) -> str:
    """Wrap binary content in a base64 ``data:`` URI."""
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"
