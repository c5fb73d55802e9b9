"""Human-readable bill formats rendered from Jinja2 templates."""

from fleetbill.formatters.common import get_template_environment
from fleetbill.models import Bill


def format_as_html(bill: Bill) -> str:
    """Render a standalone HTML page (inline styles, no external assets)."""
    template = get_template_environment().get_template("bill.html")
    return template.render(bill=bill)


def format_as_text(bill: Bill) -> str:
    """Render a fixed-layout plain text report."""
    template = get_template_environment().get_template("bill.txt")
    return template.render(bill=bill)
