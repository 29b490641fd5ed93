"""Number formatting for statistics and exports (US conventions)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def format_currency(amount: Decimal | float | int) -> str:
    """``1234.5`` -> ``"$1,234.50"``, ``-3`` -> ``"-$3.00"``."""
    value = Decimal(str(amount)).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percent(part: Decimal | float | int, whole: Decimal | float | int) -> str:
    """Share of ``whole`` with two decimals, ``"0%"`` when whole is 0."""
    if not whole:
        return "0%"
    value = Decimal(str(part)) / Decimal(str(whole)) * 100
    return f"{value.quantize(_CENT, rounding=ROUND_HALF_UP)}%"


def format_confidence(value: float) -> str:
    return f"{value:.4f}"


def average(total: Decimal, count: int) -> Decimal:
    if count == 0:
        return Decimal("0")
    return total / count
