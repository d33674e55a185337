"""
Conversions between JSON-shaped data and BSON values.

Generated pipelines arrive as plain JSON, so ObjectId and date literals are
written in Extended JSON form ({"$oid": ...}, {"$date": ...}) and must be
turned into BSON types before execution. Result documents go the other way:
ObjectId, datetime and Decimal128 values are rendered as strings so the
response serializes cleanly.
"""

import re
from datetime import date, datetime, timezone
from typing import Any

from bson import Decimal128, ObjectId
from bson.errors import InvalidId


_OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def looks_like_object_id(value: Any) -> bool:
    """True for 24-character hex strings."""
    return isinstance(value, str) and bool(_OBJECT_ID_PATTERN.match(value))


def _parse_date(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, dict) and "$numberLong" in value:
        return datetime.fromtimestamp(int(value["$numberLong"]) / 1000, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat() only accepts a trailing "Z" on 3.11+
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


def from_extended_json(value: Any) -> Any:
    """
    Recursively replace Extended JSON literals with BSON values.

    {"$oid": "<24 hex>"} becomes ObjectId, {"$date": <iso string | millis>}
    becomes an aware datetime. Malformed literals are left as they are so the
    server reports the error.
    """
    if isinstance(value, dict):
        if len(value) == 1 and "$oid" in value:
            try:
                return ObjectId(value["$oid"])
            except (InvalidId, TypeError):
                return value
        if len(value) == 1 and "$date" in value:
            return _parse_date(value["$date"])
        return {key: from_extended_json(item) for key, item in value.items()}

    if isinstance(value, list):
        return [from_extended_json(item) for item in value]

    return value


def to_json_safe(value: Any) -> Any:
    """Recursively convert BSON values in a result document to JSON-friendly ones."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal128):
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, dict):
        return {str(key): to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    return value
