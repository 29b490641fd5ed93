"""Pydantic schemas for the reconciliation console."""

from recon_console.schemas.record import (
    PROBLEM_STATUSES,
    BatchInfo,
    BatchRecord,
    RecordStatus,
    SideRecord,
)
from recon_console.schemas.batch import BatchStatus, BatchSummary, ReconciliationBatch

__all__ = [
    "PROBLEM_STATUSES",
    "BatchInfo",
    "BatchRecord",
    "BatchStatus",
    "BatchSummary",
    "ReconciliationBatch",
    "RecordStatus",
    "SideRecord",
]
