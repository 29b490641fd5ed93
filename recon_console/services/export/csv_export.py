"""CSV export of a batch's problematic records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from recon_console.core.logging import get_logger
from recon_console.schemas.record import BatchRecord

logger = get_logger(__name__)

EXPORT_HEADERS: list[str] = [
    "Transaction ID",
    "Description",
    "Amount",
    "Date",
    "Status",
    "Confidence",
    "Direction",
    "AI Reasoning",
    "Flags",
    "Bank Record ID",
    "Bank Record Reference",
    "Bank Record Amount",
    "Bank Record Date",
    "Bank Record Description",
    "System Record ID",
    "System Record Reference",
    "System Record Amount",
    "System Record Date",
    "System Record Description",
    "Resolution Comments",
]

NO_PROBLEMS_MESSAGE = "No problematic records found to export."


@dataclass
class ExportFile:
    filename: str
    content: str
    record_count: int
    media_type: str = "text/csv;charset=utf-8"


def escape_csv_value(value: Any) -> str:
    """Quote values holding a comma, quote or newline; double inner quotes."""
    if value is None:
        return ""
    text = str(value)
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def format_confidence_cell(confidence: float) -> str:
    if not confidence:
        return "N/A"
    return f"{round(confidence * 100)}%"


def _row(record: BatchRecord) -> str:
    bank = record.bank_record
    system = record.system_record
    cells = [
        record.transaction_id,
        record.description,
        record.amount,
        record.date,
        record.status.value,
        format_confidence_cell(record.confidence),
        record.direction,
        record.ai_reasoning,
        "; ".join(record.flags),
        bank.id if bank else None,
        bank.reference if bank else None,
        bank.amount if bank else None,
        bank.date if bank else None,
        bank.description if bank else None,
        system.id,
        system.reference,
        system.amount,
        system.date,
        system.description,
        "; ".join(record.resolution_comment),
    ]
    return ",".join(escape_csv_value(c) for c in cells)


def export_filename(batch_id: str, on: Optional[date] = None) -> str:
    return f"problematic_records_{batch_id}_{(on or date.today()).isoformat()}.csv"


def export_problematic_records(
    records: list[BatchRecord], batch_id: str, on: Optional[date] = None
) -> Optional[ExportFile]:
    """Build the CSV of every non-matched record, or None when there are none."""
    problems = [r for r in records if r.is_problem]
    if not problems:
        logger.info("Export for %s skipped: no problematic records", batch_id)
        return None

    lines = [",".join(EXPORT_HEADERS)]
    lines.extend(_row(r) for r in problems)
    logger.info("Exported %d problematic records for %s", len(problems), batch_id)
    return ExportFile(
        filename=export_filename(batch_id, on),
        content="\n".join(lines),
        record_count=len(problems),
    )
