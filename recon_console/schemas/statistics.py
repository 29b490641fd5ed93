"""Pydantic schemas for derived batch statistics."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class DirectionSummary(BaseModel):
    """Totals for one transaction direction (debit or credit)."""

    count: int = 0
    total: Decimal = Decimal("0")
    total_formatted: str = "$0.00"
    percent: str = Field("0%", description="Share of the combined debit+credit total")
    average_formatted: str = "$0.00"


class DebitCreditSummary(BaseModel):
    """Debit vs credit split of a batch's records, by backoffice amount."""

    debit: DirectionSummary
    credit: DirectionSummary
    net_credit_position: Decimal = Decimal("0")
    net_credit_position_formatted: str = "$0.00"


class StatusBreakdownRow(BaseModel):
    """Aggregates for one record status (or the synthetic TOTAL row)."""

    status: str
    count: int = 0
    percent: str = "0%"
    total_amount: Decimal = Decimal("0")
    total_amount_formatted: str = "$0.00"
    average_confidence: str = "0.0000"
    average_amount_formatted: str = "$0.00"


class DiscrepancyIssue(BaseModel):
    """Records grouped by the issue type named in their AI reasoning."""

    issue_type: str
    count: int = 0
    affected_amount: Decimal = Decimal("0")
    affected_amount_formatted: str = "$0.00"
    example: str = ""
    severity: str = Field("Medium", description="Low | Medium")


class BatchStatistics(BaseModel):
    """Everything the detail view shows above the record table."""

    batch_id: str
    record_count: int
    debit_credit: DebitCreditSummary
    status_breakdown: list[StatusBreakdownRow]
    discrepancies: list[DiscrepancyIssue]
