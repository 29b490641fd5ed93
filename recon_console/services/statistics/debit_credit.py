"""Debit vs credit summary of a batch's records."""

from __future__ import annotations

from decimal import Decimal

from recon_console.schemas.record import BatchRecord
from recon_console.schemas.statistics import DebitCreditSummary, DirectionSummary
from recon_console.services.statistics.formatting import (
    average,
    format_currency,
    format_percent,
)


def _side(count: int, total: Decimal, combined: Decimal) -> DirectionSummary:
    return DirectionSummary(
        count=count,
        total=total,
        total_formatted=format_currency(total),
        percent=format_percent(total, combined),
        average_formatted=format_currency(average(total, count)),
    )


def summarize_debit_credit(records: list[BatchRecord]) -> DebitCreditSummary:
    """Partition records by direction and total their backoffice amounts.

    Directions other than debit/credit (e.g. ``Unknown``) are left out of
    both sides.
    """
    debit_count = credit_count = 0
    debit_total = credit_total = Decimal("0")

    for record in records:
        direction = (record.direction or "").strip().lower()
        if direction == "debit":
            debit_count += 1
            debit_total += record.bank_amount
        elif direction == "credit":
            credit_count += 1
            credit_total += record.bank_amount

    combined = debit_total + credit_total
    net = credit_total - debit_total

    return DebitCreditSummary(
        debit=_side(debit_count, debit_total, combined),
        credit=_side(credit_count, credit_total, combined),
        net_credit_position=net,
        net_credit_position_formatted=format_currency(net),
    )
