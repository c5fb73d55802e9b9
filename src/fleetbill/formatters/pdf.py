"""PDF rendering of bills with ReportLab.

The normal layout is a platypus document with a summary table and a
vehicle table. If that layout cannot be built, the same information is
drawn line by line on a plain canvas so a PDF is still produced.
"""

import asyncio
import functools
import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from fleetbill.formatters.common import (
    FILE_FORMATS,
    BillFormattingError,
    encode_data_uri,
    format_currency,
    format_rate,
    format_uk_date,
)
from fleetbill.models import Bill, BillFormat

logger = logging.getLogger(__name__)

GOLD = colors.Color(212 / 255, 175 / 255, 55 / 255)
PRIMARY_TEXT = colors.Color(17 / 255, 24 / 255, 39 / 255)
SECONDARY_TEXT = colors.Color(107 / 255, 114 / 255, 128 / 255)
LABEL_TEXT = colors.Color(31 / 255, 41 / 255, 55 / 255)
STRIPE = colors.Color(249 / 255, 250 / 255, 251 / 255)
FOOTER_TEXT = colors.Color(156 / 255, 163 / 255, 175 / 255)

MARGIN = 14 * mm
FOOTER_Y = 10 * mm

VEHICLE_COLUMNS = [
    "Registration",
    "Make",
    "Model",
    "Start Miles",
    "End Miles",
    "Miles Driven",
    "Cost",
]
VEHICLE_COLUMN_WIDTHS = [w * mm for w in (26, 26, 26, 28, 28, 26, 22)]


class FooterCanvas(canvas.Canvas):
    """Canvas that stamps ``<footer_text> - Page N of M`` on every page.

    Pages are buffered until ``save`` so the total page count is known.
    """

    def __init__(self, *args, footer_text: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.footer_text = footer_text
        self._saved_page_states: list[dict] = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        page_count = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(page_count)
            super().showPage()
        super().save()

    def _draw_footer(self, page_count: int) -> None:
        self.saveState()
        self.setFont("Helvetica", 10)
        self.setFillColor(FOOTER_TEXT)
        self.drawString(
            MARGIN,
            FOOTER_Y,
            f"{self.footer_text} - Page {self.getPageNumber()} of {page_count}",
        )
        self.restoreState()


def _format_number(value: float) -> str:
    return f"{value:,.2f}"


def _summary_rows(bill: Bill) -> list[list[str]]:
    period = (
        f"{format_uk_date(bill.billing_period_start)} to "
        f"{format_uk_date(bill.billing_period_end)}"
    )
    return [
        ["Billing Period:", period],
        ["Total Miles:", _format_number(bill.total_miles)],
        ["Cost Per Mile:", format_rate(bill.cost_per_mile)],
        ["Total Cost:", format_currency(bill.total_cost)],
    ]


def _build_story(bill: Bill) -> list:
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "BillTitle", parent=styles["Heading1"], fontSize=20, leading=24, textColor=PRIMARY_TEXT
    )
    subtitle_style = ParagraphStyle(
        "BillSubtitle", parent=styles["Normal"], fontSize=12, leading=16, textColor=SECONDARY_TEXT
    )
    heading_style = ParagraphStyle(
        "BillHeading", parent=styles["Heading2"], fontSize=14, leading=18, textColor=PRIMARY_TEXT
    )

    summary_table = Table(_summary_rows(bill), hAlign="LEFT")
    summary_table.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 12),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("TEXTCOLOR", (0, 0), (0, -1), LABEL_TEXT),
                ("ALIGN", (1, 0), (1, -1), "LEFT"),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )

    rows = [VEHICLE_COLUMNS]
    for vehicle in bill.vehicles:
        rows.append(
            [
                vehicle.license_plate,
                vehicle.make,
                vehicle.model,
                _format_number(vehicle.start_odometer_miles),
                _format_number(vehicle.end_odometer_miles),
                _format_number(vehicle.miles_travelled),
                format_currency(vehicle.cost),
            ]
        )
    rows.append(
        ["", "", "", "", "Total:", _format_number(bill.total_miles), format_currency(bill.total_cost)]
    )

    vehicle_table = Table(rows, colWidths=VEHICLE_COLUMN_WIDTHS, repeatRows=1)
    vehicle_table.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("TOPPADDING", (0, 0), (-1, -1), 6),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ("ALIGN", (3, 0), (-1, -1), "RIGHT"),
                # Header
                ("BACKGROUND", (0, 0), (-1, 0), GOLD),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                # Body
                ("ROWBACKGROUNDS", (0, 1), (-1, -2), [colors.white, STRIPE]),
                # Totals
                ("BACKGROUND", (0, -1), (-1, -1), STRIPE),
                ("TEXTCOLOR", (0, -1), (-1, -1), PRIMARY_TEXT),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 1, GOLD),
            ]
        )
    )

    return [
        Paragraph("Vehicle Usage Bill", title_style),
        Paragraph(escape(bill.customer_name), subtitle_style),
        Spacer(1, 6 * mm),
        Paragraph("Bill Overview", heading_style),
        summary_table,
        Spacer(1, 8 * mm),
        Paragraph("Vehicle Details", heading_style),
        vehicle_table,
    ]


def _build_table_document(bill: Bill, buffer: io.BytesIO, footer_text: str) -> None:
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=20 * mm,
        title="Vehicle Usage Bill",
        subject=f"Bill for {bill.customer_name}",
        author="Fleet Billing",
        creator="fleetbill",
    )
    doc.build(
        _build_story(bill),
        canvasmaker=functools.partial(FooterCanvas, footer_text=footer_text),
    )


def _build_text_document(bill: Bill, buffer: io.BytesIO, footer_text: str) -> None:
    """Draw the bill as plain lines of text, one vehicle per block."""
    pdf = FooterCanvas(buffer, pagesize=A4, footer_text=footer_text)
    pdf.setTitle("Vehicle Usage Bill")
    _, page_height = A4
    top = page_height - 22 * mm
    y = top

    def write(text: str, indent: float = 0, size: int = 12, gap: float = 8 * mm) -> None:
        nonlocal y
        if y < 25 * mm:
            pdf.showPage()
            y = top
        pdf.setFont("Helvetica", size)
        pdf.setFillColor(PRIMARY_TEXT)
        pdf.drawString(MARGIN + indent, y, text)
        y -= gap

    write("Vehicle Usage Bill", size=20, gap=10 * mm)
    write(bill.customer_name, gap=12 * mm)
    write("Bill Overview", size=14, gap=9 * mm)
    for label, value in _summary_rows(bill):
        write(f"{label} {value}")
    y -= 7 * mm

    write("Vehicle Details:", size=14, gap=10 * mm)
    for vehicle in bill.vehicles:
        write(f"{vehicle.make} {vehicle.model} ({vehicle.license_plate})", indent=6 * mm)
        write(
            f"Miles: {_format_number(vehicle.miles_travelled)} "
            f"({format_currency(vehicle.cost)})",
            indent=11 * mm,
            gap=12 * mm,
        )

    write(f"Total Miles: {_format_number(bill.total_miles)}")
    write(f"Total Cost: {format_currency(bill.total_cost)}")

    pdf.showPage()
    pdf.save()


def create_pdf(bill: Bill) -> bytes:
    """Render a bill as PDF bytes.

    Falls back to a plain text layout if the table layout fails.
    """
    footer_text = f"Generated on: {format_uk_date(bill.generated_at)}"

    buffer = io.BytesIO()
    try:
        _build_table_document(bill, buffer, footer_text)
    except Exception:
        logger.exception("Error laying out PDF tables, falling back to text layout")
        buffer = io.BytesIO()
        _build_text_document(bill, buffer, footer_text)

    return buffer.getvalue()


async def format_as_pdf(bill: Bill, timeout: float | None = None) -> str:
    """Render a bill as PDF and return it as a base64 data URI.

    Rendering and encoding run in the default executor so the event loop
    stays responsive.

    Args:
        bill: The bill to render
        timeout: Seconds allowed for rendering, or None for no limit

    Returns:
        ``data:application/pdf;base64,...``

    Raises:
        BillFormattingError: If no PDF could be produced or encoded
    """
    loop = asyncio.get_running_loop()
    mime_type = FILE_FORMATS[BillFormat.PDF].mime_type

    try:
        pdf_bytes = await asyncio.wait_for(
            loop.run_in_executor(None, create_pdf, bill), timeout
        )
        return await loop.run_in_executor(None, encode_data_uri, pdf_bytes, mime_type)
    except TimeoutError as e:
        raise BillFormattingError(f"PDF rendering timed out after {timeout} seconds") from e
    except Exception as e:
        raise BillFormattingError(f"Failed to generate PDF: {e}") from e
