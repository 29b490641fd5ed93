"""Pydantic schemas for normalized reconciliation batches."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from recon_console.schemas.record import BatchRecord


class BatchStatus(str, Enum):
    """Lifecycle of a reconciliation run as shown in the console."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


class ReconciliationBatch(BaseModel):
    """One reconciliation run pairing a backoffice file with a vendor file.

    Record counts and ``match_rate`` start at zero and are only filled in
    once the batch's records have been fetched and attached.
    """

    id: str = Field(..., description="Display id, e.g. RB-42")
    raw_id: int = Field(..., description="Numeric id used by the backend")
    date: str = Field(..., description="Creation timestamp (ISO 8601)")
    updated_at: Optional[str] = None
    status: BatchStatus = BatchStatus.PENDING
    total_records: int = 0
    matched_records: int = 0
    unmatched_records: int = 0
    partial_records: int = 0
    duplicate_records: int = 0
    missing_records: int = 0
    anomaly_count: int = 0
    match_rate: int = Field(0, description="Matched records as a whole percent")
    bank_file_name: str = "Unknown File"
    vendor_file_name: str = "Unknown File"
    processing_time: Optional[str] = Field(
        None,
        description="'{minutes}m {seconds}s', only for DONE batches",
    )
    failure_reason: Optional[str] = None
    records: list[BatchRecord] = Field(default_factory=list)


class BatchSummary(BaseModel):
    """Batch row for list views (records left out)."""

    id: str
    date: str
    status: BatchStatus
    total_records: int
    matched_records: int
    unmatched_records: int
    partial_records: int
    anomaly_count: int
    match_rate: int
    bank_file_name: str
    vendor_file_name: str
    processing_time: Optional[str] = None
    failure_reason: Optional[str] = None

    @classmethod
    def from_batch(cls, batch: ReconciliationBatch) -> BatchSummary:
        return cls(**batch.model_dump(exclude={"records", "raw_id", "updated_at"}))
