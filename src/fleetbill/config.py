"""Billing constants and runtime settings.

The customer, fleet, rate and billing period are fixed business values.
Only the connection details for the telemetry API and a few operational
knobs come from the environment (or a ``.env`` file loaded by the CLI).
"""

import os

from pydantic import BaseModel, ConfigDict, Field

CUSTOMER_NAME = "Bob's Taxis"
FLEET_LICENSE_PLATES: tuple[str, ...] = ("CBDH 789", "86532 AZE")

# GBP per mile
COST_PER_MILE = 0.207
CURRENCY_SYMBOL = "£"
CURRENCY_CODE = "GBP"

METERS_PER_MILE = 1609.344

BILLING_PERIOD_START = "2021-02-01T00:00:00Z"
BILLING_PERIOD_END = "2021-02-28T23:59:00Z"

DEFAULT_API_BASE_URL = "https://funczetiinterviewtest.azurewebsites.net"


class Settings(BaseModel):
    """Runtime settings read from ``FLEETBILL_*`` environment variables."""

    model_config = ConfigDict(frozen=True)

    api_base_url: str = Field(
        DEFAULT_API_BASE_URL, description="Base URL of the telemetry API"
    )
    request_timeout: float = Field(
        30.0, gt=0, description="HTTP timeout in seconds"
    )
    max_attempts: int = Field(
        3, ge=1, description="Attempts per telemetry request before giving up"
    )
    pdf_timeout: float | None = Field(
        None, gt=0, description="Seconds allowed for PDF rendering (None = no limit)"
    )
    log_level: str = Field("WARNING", description="Log level name")


_ENV_VARS = {
    "api_base_url": "FLEETBILL_API_BASE_URL",
    "request_timeout": "FLEETBILL_REQUEST_TIMEOUT",
    "max_attempts": "FLEETBILL_MAX_ATTEMPTS",
    "pdf_timeout": "FLEETBILL_PDF_TIMEOUT",
    "log_level": "FLEETBILL_LOG_LEVEL",
}


def load_settings() -> Settings:
    """Build Settings from the environment.

    ``.env`` is loaded once when ``fleetbill.main`` is imported.

    Unset or empty variables fall back to the field defaults.

    Raises:
        pydantic.ValidationError: If a variable holds an invalid value
    """
    values = {}
    for field_name, env_var in _ENV_VARS.items():
        raw = os.getenv(env_var)
        if raw is not None and raw.strip():
            values[field_name] = raw.strip()

    return Settings(**values)
