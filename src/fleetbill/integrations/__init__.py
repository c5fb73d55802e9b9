"""Fleetbill integrations module."""

from fleetbill.integrations.local_export import LocalExporter, decode_data_uri
from fleetbill.integrations.vehicle_api import VehicleAPIClient, VehicleAPIError

__all__ = [
    "LocalExporter",
    "VehicleAPIClient",
    "VehicleAPIError",
    "decode_data_uri",
]
