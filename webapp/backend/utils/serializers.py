"""
JSON serialization of raw database rows.
"""
import base64
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def serialize_value(value: Any) -> Any:
    """Convert database values to JSON-serializable format."""
    if value is None:
        return None
    if isinstance(value, (date, datetime, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        # Return base64 for binary data instead of lossy decode
        return f"base64:{base64.b64encode(bytes(value)).decode('ascii')}"
    return value


def serialize_row(row: dict) -> dict:
    """Serialize all values in a row for JSON response."""
    return {k: serialize_value(v) for k, v in row.items()}
