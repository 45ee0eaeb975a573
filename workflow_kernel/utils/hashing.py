"""
Deterministic serialization and hashing utilities.

Snapshots, history rows and configuration checksums all go through the
same canonical JSON form so that equal data always serializes and hashes
identically.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of Decimal, datetime, date, UUID and enums
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_jsonable(data: Any) -> Any:
    """Return ``data`` converted to plain JSON types (for JSON columns)."""
    if data is None:
        return None
    return json.loads(canonicalize_json(data))


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
