"""Raw backend record -> ``BatchRecord``.

The backend stores each side of a comparison twice: a ``core`` object
with normalized field names and a ``raw`` object with the source file's
own column names.  Every scalar is looked up in core first, then under
its legacy raw column, then falls back to a synthesized default.

Each JSON-in-string field is decoded separately so that one malformed
field only empties that field's contribution.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from recon_console.core.logging import get_logger
from recon_console.schemas.record import BatchInfo, BatchRecord, SideRecord
from recon_console.services.mapping.batch_mapper import format_batch_id
from recon_console.services.mapping.json_fields import (
    decode_json_field,
    decode_json_object,
    dig,
)
from recon_console.services.mapping.normalizer import (
    file_name_from_path,
    first_present,
    normalize_batch_status,
    normalize_record_status,
    parse_timestamp,
    to_confidence,
    to_decimal,
    utc_now_iso,
)

logger = get_logger(__name__)

# core key -> legacy raw column, per side
VENDOR_KEYS: dict[str, str] = {
    "transaction_id": "Ref No",
    "description": "Details",
    "amount": "Value",
    "date": "Transaction Date",
    "status": "Status",
    "direction": "DR/CR",
}

BACKOFFICE_KEYS: dict[str, str] = {
    "transaction_id": "Transaction ID",
    "description": "Description",
    "amount": "Amount",
    "date": "Date",
    "status": "Status",
    "direction": "Direction",
}


def _lookup(core: dict, raw: dict, field: str, keys: dict[str, str]) -> Any:
    return first_present(core.get(field), raw.get(keys[field]))


def _as_text(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _side_sections(
    display_data: dict, payload: dict, side: str
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Pick the core/raw objects for one side, display data first."""
    core = dig(display_data, side, "core") or dig(payload, "core") or {}
    raw = dig(display_data, side, "raw") or dig(payload, "raw") or {}
    if not isinstance(core, dict):
        core = {}
    if not isinstance(raw, dict):
        raw = {}
    return core, raw


def _fallback_date(created_at: Any) -> str:
    parsed = parse_timestamp(created_at)
    if parsed is not None:
        return parsed.date().isoformat()
    return date.today().isoformat()


def _parse_flags(raw_flags: Any, record_id: Any) -> list[str]:
    parsed = decode_json_field(raw_flags, "fieldFlags", record_id, default=None)
    if isinstance(parsed, dict):
        return [f"{key}: {value}" for key, value in parsed.items()]
    return []


def _parse_reasoning(raw_discrepancies: Any, record_id: Any) -> Optional[str]:
    """Join a list, keep a string, fall back to the undecoded text."""
    if raw_discrepancies is None or raw_discrepancies == "":
        return None
    if isinstance(raw_discrepancies, list):
        return "; ".join(str(item) for item in raw_discrepancies)
    sentinel = object()
    parsed = decode_json_field(raw_discrepancies, "discrepancies", record_id, default=sentinel)
    if parsed is sentinel:
        return raw_discrepancies if isinstance(raw_discrepancies, str) else None
    if isinstance(parsed, list):
        return "; ".join(str(item) for item in parsed)
    if isinstance(parsed, str):
        return parsed
    return None


def _normalize_comments(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def _map_batch_info(raw_batch: Any) -> Optional[BatchInfo]:
    if not isinstance(raw_batch, dict):
        return None
    now = utc_now_iso()
    return BatchInfo(
        id=format_batch_id(raw_batch.get("id")),
        backoffice_file=file_name_from_path(raw_batch.get("backofficeFile")),
        vendor_file=file_name_from_path(raw_batch.get("vendorFile")),
        status=normalize_batch_status(raw_batch.get("status")).value,
        created_at=raw_batch.get("createdAt") or now,
        updated_at=raw_batch.get("updatedAt") or now,
    )


def map_record(raw: dict[str, Any]) -> BatchRecord:
    """Normalize one backend record payload.  Never raises on bad JSON."""
    record_id = raw.get("id")

    display_data = decode_json_object(raw.get("displayData"), "displayData", record_id)
    vendor_data = decode_json_object(raw.get("vendorData"), "vendorData", record_id)
    backoffice_data = decode_json_object(
        raw.get("backofficeData"), "backofficeData", record_id
    )

    vendor_core, vendor_raw = _side_sections(display_data, vendor_data, "vendor")
    office_core, office_raw = _side_sections(display_data, backoffice_data, "backoffice")

    def vendor(field: str) -> Any:
        return _lookup(vendor_core, vendor_raw, field, VENDOR_KEYS)

    def office(field: str) -> Any:
        return _lookup(office_core, office_raw, field, BACKOFFICE_KEYS)

    vendor_txn_id = vendor("transaction_id")
    vendor_amount = to_decimal(vendor("amount"))
    vendor_direction = _as_text(vendor("direction"), "Unknown")

    bank_record: Optional[SideRecord] = None
    if office_core or office_raw:
        office_txn_id = office("transaction_id")
        bank_record = SideRecord(
            id=_as_text(office_txn_id, f"BNK{record_id}"),
            reference=_as_text(office_txn_id),
            amount=to_decimal(office("amount")),
            date=_as_text(office("date")),
            description=_as_text(office("description")),
            status=_as_text(office("status")),
            direction=_as_text(office("direction"), "Unknown"),
        )

    system_record = SideRecord(
        id=_as_text(vendor_txn_id, f"SYS{record_id}"),
        reference=_as_text(vendor_txn_id),
        amount=vendor_amount,
        date=_as_text(vendor("date")),
        description=_as_text(vendor("description")),
        status=_as_text(vendor("status")),
        direction=vendor_direction,
    )

    return BatchRecord(
        id=str(record_id),
        transaction_id=_as_text(vendor_txn_id, f"TXN-{record_id}"),
        description=_as_text(vendor("description"), "Unknown Transaction"),
        amount=vendor_amount,
        date=_as_text(vendor("date")) or _fallback_date(raw.get("createdAt")),
        status=normalize_record_status(raw.get("matchStatus")),
        confidence=to_confidence(raw.get("confidence")),
        direction=vendor_direction,
        bank_record=bank_record,
        system_record=system_record,
        ai_reasoning=_parse_reasoning(raw.get("discrepancies"), record_id),
        flags=_parse_flags(raw.get("fieldFlags"), record_id),
        resolved=bool(raw.get("resolved") or False),
        resolution_comment=_normalize_comments(raw.get("resolutionComment")),
        batch_info=_map_batch_info(raw.get("batch")),
        display_data=display_data,
    )


def map_records(raw_records: list[dict[str, Any]] | None) -> list[BatchRecord]:
    return [map_record(r) for r in raw_records or []]
