import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import typer
from dotenv import load_dotenv

from fleetbill.billing.calculator import generate_bill
from fleetbill.config import BILLING_PERIOD_END, BILLING_PERIOD_START, load_settings
from fleetbill.formatters import (
    BillFormattingError,
    bill_filename,
    get_file_info,
    render_bill,
)
from fleetbill.formatters.common import format_currency, format_miles
from fleetbill.integrations.local_export import LocalExporter
from fleetbill.integrations.vehicle_api import VehicleAPIClient, VehicleAPIError
from fleetbill.models import BillFormat, BillingResult, FormattedBill
from fleetbill.utils.logging import setup_logging

load_dotenv()

app = typer.Typer(no_args_is_help=True)


@app.callback(invoke_without_command=True)
def callback(ctx: typer.Context):
    """Fleetbill CLI tool."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


async def run_billing(
    client: VehicleAPIClient,
    bill_format: BillFormat | str,
    start: datetime | str = BILLING_PERIOD_START,
    end: datetime | str = BILLING_PERIOD_END,
    on_progress: Callable[[str, str], None] | None = None,
    pdf_timeout: float | None = None,
) -> tuple[BillingResult, FormattedBill]:
    """Fetch both snapshots, build the bill and render it.

    Args:
        client: Telemetry API client
        bill_format: Requested output format
        start: Start of the billing period
        end: End of the billing period
        on_progress: Optional callback for progress updates (event_type, message)
        pdf_timeout: Seconds allowed for PDF rendering, or None for no limit

    Returns:
        The billing result (bill and notices) and the rendered bill

    Raises:
        VehicleAPIError: If either snapshot cannot be fetched
        BillFormattingError: If a PDF cannot be produced
    """
    # Both snapshots are fetched concurrently; either failing aborts the run
    start_vehicles, end_vehicles = await asyncio.gather(
        client.fetch_snapshot(start), client.fetch_snapshot(end)
    )
    if on_progress:
        on_progress(
            "fetch_success",
            f"Fetched {len(start_vehicles)} start and {len(end_vehicles)} end vehicles",
        )

    result = generate_bill(start_vehicles, end_vehicles, start, end)
    for notice in result.notices:
        if on_progress:
            on_progress("notice", notice.message)

    bill = result.bill
    if on_progress:
        on_progress(
            "bill_success",
            f"Bill for {bill.customer_name}: {len(bill.vehicles)} vehicles, "
            f"{format_miles(bill.total_miles)} miles, {format_currency(bill.total_cost)}",
        )

    formatted = await render_bill(bill, bill_format, pdf_timeout=pdf_timeout)
    if on_progress:
        on_progress("format_success", f"Rendered bill as {formatted.format.value}")

    return result, formatted


@app.command()
def generate(
    bill_format: str = typer.Option(
        BillFormat.PDF.value,
        "--format",
        "-f",
        help="Output format: json, csv, pdf, html, text or xml",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="File to write (default: derived from the customer and period)",
    ),
    stdout: bool = typer.Option(
        False, "--stdout", help="Print the bill instead of writing a file"
    ),
):
    """Generate the fleet bill for the billing period."""
    try:
        settings = load_settings()
    except ValueError as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1) from e

    setup_logging(settings.log_level)

    if stdout and get_file_info(bill_format).extension == "pdf":
        typer.echo("Error: PDF output cannot be printed, use --output", err=True)
        raise typer.Exit(code=1)

    def cli_progress(event_type: str, message: str):
        """Callback to handle progress events and output to CLI."""
        if event_type == "notice":
            typer.echo(f"Warning: {message}", err=True)
        elif not stdout:
            typer.echo(message)

    async def execute_pipeline() -> tuple[BillingResult, FormattedBill]:
        async with VehicleAPIClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
        ) as client:
            return await run_billing(
                client,
                bill_format,
                on_progress=cli_progress,
                pdf_timeout=settings.pdf_timeout,
            )

    try:
        result, formatted = asyncio.run(execute_pipeline())
    except VehicleAPIError as e:
        typer.echo(f"Error fetching vehicle data: {e}", err=True)
        raise typer.Exit(code=1) from e
    except BillFormattingError as e:
        typer.echo(f"Error formatting bill: {e}", err=True)
        raise typer.Exit(code=1) from e

    if stdout:
        typer.echo(formatted.content, nl=False)
        return

    path = output or Path(bill_filename(result.bill, formatted.format))
    try:
        LocalExporter().export(formatted, path)
    except (OSError, ValueError) as e:
        typer.echo(f"Failed to write {path}: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Saved {formatted.file_info.mime_type} bill to {path}")


@app.command()
def formats():
    """List the supported output formats."""
    for bill_format in BillFormat:
        info = get_file_info(bill_format)
        typer.echo(f"{bill_format.value:<6} .{info.extension:<5} {info.mime_type}")


def main():
    app()


if __name__ == "__main__":
    main()
