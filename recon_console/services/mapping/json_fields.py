"""Defensive decoding of JSON-encoded-as-string backend fields.

The backend ships several record fields as JSON text inside JSON.  Each
one is decoded on its own; a bad field is logged and replaced by a
fallback so the rest of the record still maps.
"""

from __future__ import annotations

import json
from typing import Any

from recon_console.core.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


def decode_json_field(
    raw: Any,
    field_name: str,
    record_id: Any,
    default: Any = None,
) -> Any:
    """Decode one string field, returning ``default`` on any failure.

    Values that are already decoded (dict/list) pass through untouched;
    ``None`` and empty strings yield ``default`` without a warning.
    """
    if raw is None or raw == "":
        return default
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, (str, bytes, bytearray)):
        logger.warning(
            "Unexpected %s type for record %s: %s",
            field_name,
            record_id,
            type(raw).__name__,
        )
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Failed to parse %s for record %s: %s", field_name, record_id, exc)
        return default


def decode_json_object(raw: Any, field_name: str, record_id: Any) -> dict[str, Any]:
    """Like ``decode_json_field`` but always yields a dict."""
    value = decode_json_field(raw, field_name, record_id, default={})
    if not isinstance(value, dict):
        logger.warning(
            "Expected an object for %s of record %s, got %s",
            field_name,
            record_id,
            type(value).__name__,
        )
        return {}
    return value


def dig(data: Any, *path: str) -> Any:
    """Walk nested dicts, returning ``None`` as soon as a step is missing."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return None
    return current
