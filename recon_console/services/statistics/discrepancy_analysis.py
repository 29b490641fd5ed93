"""Group records by the issue types named in their AI reasoning.

Reasoning text looks like::

    "Amount mismatch: 100.00 vs 99.50; Description differs: 'ACME' vs 'Acme'"

Each ``"; "``-separated segment contributes one issue type, the text
before its first colon.
"""

from __future__ import annotations

from decimal import Decimal

from recon_console.schemas.record import BatchRecord
from recon_console.schemas.statistics import DiscrepancyIssue
from recon_console.services.statistics.formatting import format_currency


def issue_types(reasoning: str | None) -> list[str]:
    if not reasoning:
        return []
    types = []
    for segment in reasoning.split("; "):
        issue = segment.split(":", 1)[0].strip()
        if issue:
            types.append(issue)
    return types


def issue_severity(issue_type: str) -> str:
    return "Low" if "description" in issue_type.lower() else "Medium"


def analyze_discrepancies(records: list[BatchRecord]) -> list[DiscrepancyIssue]:
    """Aggregate count, affected amount and one example per issue type."""
    grouped: dict[str, dict] = {}

    for record in records:
        for issue in issue_types(record.ai_reasoning):
            if issue not in grouped:
                bank_id = record.bank_record.id if record.bank_record else "N/A"
                grouped[issue] = {
                    "count": 0,
                    "amount": Decimal("0"),
                    "example": f"{record.transaction_id} / {bank_id}, {record.ai_reasoning}",
                }
            grouped[issue]["count"] += 1
            grouped[issue]["amount"] += record.amount

    issues = [
        DiscrepancyIssue(
            issue_type=issue,
            count=data["count"],
            affected_amount=data["amount"],
            affected_amount_formatted=format_currency(data["amount"]),
            example=data["example"],
            severity=issue_severity(issue),
        )
        for issue, data in grouped.items()
    ]
    issues.sort(key=lambda i: (-i.count, i.issue_type))
    return issues
