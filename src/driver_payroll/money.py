"""Money helpers: cent rounding and amortization.

All amounts are Decimal. Floats never enter a calculation; inputs are
converted through ``str`` so that 0.1 stays 0.1.

Rounding modes:
- HALF_UP for percentages (service fee, split, 10% repayment suggestion)
- FLOOR for amortized installments (remainder goes to the first week)
- CEILING for the escrow weekly target
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | str | float) -> Decimal:
    """Convert a value to Decimal without rounding."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(amount: Decimal) -> Decimal:
    """Round amount to cents, half away from zero."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def floor_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_FLOOR)


def ceil_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_CEILING)


def is_whole_cents(amount: Decimal) -> bool:
    """True if the amount has no precision beyond cents."""
    return amount == amount.quantize(CENTS)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Return ``amount * percent / 100`` rounded half-up to cents."""
    return round_half_up(amount * percent / HUNDRED)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts, starting from a two-place zero."""
    total = ZERO
    for amount in amounts:
        total += amount
    return total


def amortize(total: Decimal, weeks: int) -> list[Decimal]:
    """Split ``total`` into ``weeks`` installments.

    Each installment is ``floor(total / weeks)`` to the cent; the rounding
    remainder is added to the first installment so the schedule sums to
    exactly ``total``.
    """
    if weeks < 1:
        raise ValueError("weeks must be at least 1")
    base = floor_cents(total / weeks)
    installments = [base] * weeks
    installments[0] = total - base * (weeks - 1)
    return installments
