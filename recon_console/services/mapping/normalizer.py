"""Normalizer helpers shared by the batch and record mappers.

One place to handle the backend's loose data: free-form status strings,
full storage paths where a file name is wanted, ISO timestamps with or
without a zone, and numbers that may arrive as strings.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from recon_console.core.logging import get_logger
from recon_console.schemas.batch import BatchStatus
from recon_console.schemas.record import RecordStatus

logger = get_logger(__name__)

UNKNOWN_FILE = "Unknown File"

# Backend batch status (uppercased) -> console lifecycle status
_BATCH_STATUS_MAP: dict[str, BatchStatus] = {
    "COMPLETED": BatchStatus.DONE,
    "PROCESSING": BatchStatus.RUNNING,
    "FAILED": BatchStatus.FAILED,
}

# Backend match status (uppercased) -> console record status
_RECORD_STATUS_MAP: dict[str, RecordStatus] = {
    "MATCH": RecordStatus.MATCHED,
    "FULL_MATCH": RecordStatus.MATCHED,
    "PARTIAL_MATCH": RecordStatus.PARTIAL,
    "MISMATCH": RecordStatus.UNMATCHED,
    "DUPLICATE": RecordStatus.DUPLICATE,
    "MISSING": RecordStatus.MISSING,
}


def normalize_batch_status(status: Any) -> BatchStatus:
    """Map a backend batch status; anything unknown is PENDING."""
    if not isinstance(status, str):
        return BatchStatus.PENDING
    return _BATCH_STATUS_MAP.get(status.strip().upper(), BatchStatus.PENDING)


def normalize_record_status(match_status: Any) -> RecordStatus:
    """Map a backend match status; anything unknown is UNMATCHED."""
    if not isinstance(match_status, str):
        return RecordStatus.UNMATCHED
    return _RECORD_STATUS_MAP.get(match_status.strip().upper(), RecordStatus.UNMATCHED)


def file_name_from_path(path: Any) -> str:
    """Keep the text after the last ``/``; ``Unknown File`` when empty."""
    if not isinstance(path, str) or not path:
        return UNKNOWN_FILE
    name = path.split("/")[-1]
    return name or UNKNOWN_FILE


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Could not parse timestamp: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def to_decimal(value: Any) -> Decimal:
    """Convert a loosely typed amount to Decimal; invalid input is 0."""
    if value is None or value == "" or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        logger.debug("Non-numeric amount %r, using 0", value)
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def to_confidence(value: Any) -> float:
    """Confidence as a float clamped to [0, 1]."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return min(max(number, 0.0), 1.0)


def first_present(*values: Any) -> Any:
    """Return the first value that is neither None nor an empty string."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and value == "":
            continue
        return value
    return None
