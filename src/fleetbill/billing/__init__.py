"""Bill calculation for the fleet."""

from fleetbill.billing.cache import BillCache
from fleetbill.billing.calculator import (
    BillingCalculator,
    calculate_cost,
    calculate_miles_travelled,
    clear_bill_cache,
    filter_fleet,
    generate_bill,
    meters_to_miles,
)

__all__ = [
    "BillCache",
    "BillingCalculator",
    "calculate_cost",
    "calculate_miles_travelled",
    "clear_bill_cache",
    "filter_fleet",
    "generate_bill",
    "meters_to_miles",
]
