"""Pydantic schemas for normalized reconciliation records."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class RecordStatus(str, Enum):
    """How well the two sides of a record agree."""

    MATCHED = "MATCHED"
    PARTIAL = "PARTIAL"
    UNMATCHED = "UNMATCHED"
    DUPLICATE = "DUPLICATE"
    MISSING = "MISSING"


# Everything except MATCHED needs a human look
PROBLEM_STATUSES: tuple[RecordStatus, ...] = (
    RecordStatus.UNMATCHED,
    RecordStatus.PARTIAL,
    RecordStatus.DUPLICATE,
    RecordStatus.MISSING,
)


class SideRecord(BaseModel):
    """One side (backoffice or vendor) of a reconciled transaction."""

    id: str
    reference: str = ""
    amount: Decimal = Decimal("0")
    date: str = ""
    description: str = ""
    status: str = ""
    direction: str = "Unknown"


class BatchInfo(BaseModel):
    """Summary of the owning batch when the backend embeds it in a record."""

    id: str
    backoffice_file: str
    vendor_file: str
    status: str
    created_at: str
    updated_at: str


class BatchRecord(BaseModel):
    """A single transaction-level comparison result within a batch."""

    id: str
    transaction_id: str
    description: str
    amount: Decimal = Field(Decimal("0"), description="Signed amount, vendor side")
    date: str
    status: RecordStatus = RecordStatus.UNMATCHED
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    direction: str = "Unknown"
    bank_record: Optional[SideRecord] = Field(
        None,
        description="Backoffice side; None when the backend sent nothing for it",
    )
    system_record: SideRecord
    ai_reasoning: Optional[str] = None
    flags: list[str] = Field(default_factory=list)
    resolved: bool = False
    resolution_comment: list[str] = Field(default_factory=list)
    batch_info: Optional[BatchInfo] = None
    display_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_problem(self) -> bool:
        return self.status in PROBLEM_STATUSES

    @property
    def bank_amount(self) -> Decimal:
        """Backoffice amount, or zero when there is no backoffice side."""
        if self.bank_record is None:
            return Decimal("0")
        return self.bank_record.amount
