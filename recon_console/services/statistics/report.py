"""All derived statistics of one batch in a single object."""

from __future__ import annotations

from recon_console.schemas.batch import ReconciliationBatch
from recon_console.schemas.statistics import BatchStatistics
from recon_console.services.statistics.debit_credit import summarize_debit_credit
from recon_console.services.statistics.discrepancy_analysis import analyze_discrepancies
from recon_console.services.statistics.status_breakdown import status_breakdown


def build_batch_statistics(batch: ReconciliationBatch) -> BatchStatistics:
    records = batch.records
    return BatchStatistics(
        batch_id=batch.id,
        record_count=len(records),
        debit_credit=summarize_debit_credit(records),
        status_breakdown=status_breakdown(records),
        discrepancies=analyze_discrepancies(records),
    )
