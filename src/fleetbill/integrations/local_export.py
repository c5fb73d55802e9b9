"""Writing rendered bills to local files."""

import base64
import binascii
from pathlib import Path

from fleetbill.models import FormattedBill


def decode_data_uri(uri: str) -> bytes:
    """Decode a base64 ``data:`` URI to raw bytes.

    Raises:
        ValueError: If ``uri`` is not a base64 data URI
    """
    header, sep, data = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URI")
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload in data URI: {e}") from e


class LocalExporter:
    """Exporter for writing rendered bills to disk.

    Text formats are written as UTF-8; data URIs (PDF) are decoded and
    written as binary.
    """

    def export(self, formatted: FormattedBill, path: Path) -> Path:
        """Write a rendered bill, replacing any existing file.

        Args:
            formatted: The rendered bill
            path: File to write; parent directories are created

        Returns:
            The path written

        Raises:
            ValueError: If binary content is not a valid data URI
            OSError: If the file cannot be written
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        if formatted.content.startswith("data:"):
            path.write_bytes(decode_data_uri(formatted.content))
        else:
            path.write_text(formatted.content, encoding="utf-8")

        return path
