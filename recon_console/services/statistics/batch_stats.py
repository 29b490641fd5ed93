"""Record counts and match rate of a batch, recomputed from its records."""

from __future__ import annotations

from recon_console.schemas.batch import ReconciliationBatch
from recon_console.schemas.record import BatchRecord, RecordStatus


def count_by_status(records: list[BatchRecord]) -> dict[RecordStatus, int]:
    counts = {status: 0 for status in RecordStatus}
    for record in records:
        counts[record.status] += 1
    return counts


def calculate_batch_stats(
    batch: ReconciliationBatch, records: list[BatchRecord]
) -> ReconciliationBatch:
    """Return a copy of ``batch`` with ``records`` attached and counted.

    ``match_rate`` always comes from the attached records; the backend's
    ``processedRecords`` is only used as the total when no records are
    loaded yet.
    """
    counts = count_by_status(records)
    matched = counts[RecordStatus.MATCHED]
    total = len(records) or batch.total_records
    match_rate = round(matched / total * 100) if total > 0 else 0
    anomalies = sum(
        count for status, count in counts.items() if status is not RecordStatus.MATCHED
    )

    return batch.model_copy(
        update={
            "total_records": total,
            "matched_records": matched,
            "unmatched_records": counts[RecordStatus.UNMATCHED],
            "partial_records": counts[RecordStatus.PARTIAL],
            "duplicate_records": counts[RecordStatus.DUPLICATE],
            "missing_records": counts[RecordStatus.MISSING],
            "anomaly_count": anomalies,
            "match_rate": match_rate,
            "records": list(records),
        }
    )


def field_has_flag(field: str, record: BatchRecord) -> bool:
    """True when any of the record's flags mentions ``field``."""
    needle = field.lower()
    return any(needle in flag.lower() for flag in record.flags)
