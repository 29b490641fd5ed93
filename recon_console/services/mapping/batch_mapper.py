"""Raw backend batch -> ``ReconciliationBatch``."""

from __future__ import annotations

from typing import Any, Optional

from recon_console.core.config import settings
from recon_console.core.logging import get_logger
from recon_console.schemas.batch import BatchStatus, ReconciliationBatch
from recon_console.services.mapping.normalizer import (
    file_name_from_path,
    normalize_batch_status,
    parse_timestamp,
    utc_now_iso,
)

logger = get_logger(__name__)


def format_batch_id(raw_id: Any, prefix: str | None = None) -> str:
    return f"{settings.batch_id_prefix if prefix is None else prefix}{raw_id}"


def parse_batch_id(batch_id: Any, prefix: str | None = None) -> Optional[int]:
    """Turn ``"RB-7"`` (or ``"7"`` / ``7``) back into the numeric id.

    Returns None for anything that is not a non-negative integer once the
    prefix is stripped.
    """
    if isinstance(batch_id, bool):
        return None
    if isinstance(batch_id, int):
        return batch_id if batch_id >= 0 else None
    if not isinstance(batch_id, str):
        return None
    prefix = settings.batch_id_prefix if prefix is None else prefix
    text = batch_id.strip()
    if prefix and text.upper().startswith(prefix.upper()):
        text = text[len(prefix):]
    if not text.isdigit():
        return None
    return int(text)


def calculate_processing_time(created_at: Any, updated_at: Any) -> Optional[str]:
    """``"{minutes}m {seconds}s"`` between two timestamps, or None."""
    start = parse_timestamp(created_at)
    end = parse_timestamp(updated_at)
    if start is None or end is None:
        return None
    total_seconds = int((end - start).total_seconds())
    if total_seconds < 0:
        return None
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}m {seconds}s"


def map_batch(raw: dict[str, Any]) -> ReconciliationBatch:
    """Normalize one backend batch payload.

    Pure: the same input always yields an equal batch, except for the
    ``date`` fallback when ``createdAt`` is absent.
    """
    raw_id = raw.get("id")
    status = normalize_batch_status(raw.get("status"))
    created_at = raw.get("createdAt")
    updated_at = raw.get("updatedAt")

    processing_time = None
    if status is BatchStatus.DONE and created_at and updated_at:
        processing_time = calculate_processing_time(created_at, updated_at)

    total_records = raw.get("processedRecords") or 0

    return ReconciliationBatch(
        id=format_batch_id(raw_id),
        raw_id=raw_id if isinstance(raw_id, int) else parse_batch_id(str(raw_id)) or 0,
        date=created_at or utc_now_iso(),
        updated_at=updated_at,
        status=status,
        total_records=int(total_records),
        bank_file_name=file_name_from_path(raw.get("backofficeFile")),
        vendor_file_name=file_name_from_path(raw.get("vendorFile")),
        processing_time=processing_time,
        failure_reason=raw.get("failureReason") if status is BatchStatus.FAILED else None,
        records=[],
    )


def map_batches(raw_batches: list[dict[str, Any]] | None) -> list[ReconciliationBatch]:
    """Map a batch list, skipping entries without a usable numeric id."""
    batches = []
    for raw in raw_batches or []:
        if parse_batch_id(raw.get("id")) is None:
            logger.warning("Skipping batch without a valid id: %r", raw.get("id"))
            continue
        batches.append(map_batch(raw))
    return batches
