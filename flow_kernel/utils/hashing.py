"""Canonical JSON and SHA-256 fingerprints for flow documents."""

import hashlib
import json
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID


def _encode_extra(value: Any) -> Any:
    # YAML loads bare dates as date objects; flow metadata may carry any of these.
    if isinstance(value, (date, UUID)):
        return value.isoformat() if isinstance(value, date) else str(value)
    if isinstance(value, Decimal):
        return str(value.normalize())
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, tuple):
        return list(value)
    raise TypeError(f"Cannot fingerprint a {type(value).__name__}")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no insignificant whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_extra)


def hash_payload(payload: Any) -> str:
    """Hex SHA-256 of ``canonicalize_json(payload)``."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()
