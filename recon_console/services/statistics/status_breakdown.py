"""Per-status breakdown of a batch's records, with a TOTAL row."""

from __future__ import annotations

from decimal import Decimal

from recon_console.schemas.record import BatchRecord, RecordStatus
from recon_console.schemas.statistics import StatusBreakdownRow
from recon_console.services.statistics.formatting import (
    average,
    format_confidence,
    format_currency,
    format_percent,
)

TOTAL_ROW = "TOTAL"


def _row(label: str, group: list[BatchRecord], overall: int) -> StatusBreakdownRow:
    count = len(group)
    total_amount = sum((r.amount for r in group), Decimal("0"))
    avg_confidence = sum(r.confidence for r in group) / count if count else 0.0
    return StatusBreakdownRow(
        status=label,
        count=count,
        percent=format_percent(count, overall),
        total_amount=total_amount,
        total_amount_formatted=format_currency(total_amount),
        average_confidence=format_confidence(avg_confidence),
        average_amount_formatted=format_currency(average(total_amount, count)),
    )


def status_breakdown(records: list[BatchRecord]) -> list[StatusBreakdownRow]:
    """One row per status in enum order, then ``TOTAL``."""
    overall = len(records)
    rows = [
        _row(status.value, [r for r in records if r.status is status], overall)
        for status in RecordStatus
    ]

    total = _row(TOTAL_ROW, records, overall)
    total.percent = "100%" if overall else "0%"
    rows.append(total)
    return rows
