"""Filtering and sorting of the batch list."""

from __future__ import annotations

import locale
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from recon_console.schemas.batch import ReconciliationBatch
from recon_console.services.mapping.normalizer import parse_timestamp

ALL = "ALL"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

SORTABLE_FIELDS: frozenset[str] = frozenset(
    name
    for name in ReconciliationBatch.model_fields
    if name not in {"records", "raw_id"}
)


def matches_search(batch: ReconciliationBatch, search: str) -> bool:
    term = (search or "").lower()
    return (
        term in batch.id.lower()
        or term in batch.bank_file_name.lower()
        or term in batch.vendor_file_name.lower()
    )


def matches_status(batch: ReconciliationBatch, status_filter: str) -> bool:
    return status_filter == ALL or batch.status.value == status_filter


def filter_batches(
    batches: list[ReconciliationBatch], search: str, status_filter: str
) -> list[ReconciliationBatch]:
    return [
        b for b in batches if matches_search(b, search) and matches_status(b, status_filter)
    ]


def _timestamp(value: Any) -> datetime:
    return parse_timestamp(value) or _EPOCH


def _sort_key(value: Any, field: str) -> Any:
    if field == "date":
        return _timestamp(value)
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return locale.strxfrm(value)
    return value


def sort_batches(
    batches: list[ReconciliationBatch],
    sort_field: Optional[str],
    direction: str = "asc",
) -> list[ReconciliationBatch]:
    """Newest first when no field is chosen, otherwise by ``sort_field``.

    Batches whose value is missing (e.g. no processing time) go last
    regardless of direction.
    """
    if not sort_field:
        return sorted(batches, key=lambda b: _timestamp(b.date), reverse=True)

    present = [b for b in batches if getattr(b, sort_field, None) is not None]
    missing = [b for b in batches if getattr(b, sort_field, None) is None]
    ordered = sorted(
        present,
        key=lambda b: _sort_key(getattr(b, sort_field), sort_field),
        reverse=direction == "desc",
    )
    return ordered + missing
