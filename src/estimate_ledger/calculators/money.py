"""Fixed-point money helpers.

All amounts are Decimal with two fractional digits. Every multiplication is
rounded immediately so repeated arithmetic never drifts.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    """Convert an input value to Decimal, treating None as zero.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return amount


def round2(amount: Decimal | int | float | str | None) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(amounts) -> Decimal:
    """Sum amounts exactly and return the result in cents."""
    total = Decimal("0")
    for amount in amounts:
        total += round2(amount)
    return round2(total)


def apply_markup(subtotal: Decimal, markup_percentage: Decimal) -> Decimal:
    """subtotal * (1 + markup/100), rounded to cents."""
    factor = Decimal("1") + to_decimal(markup_percentage) / HUNDRED
    return round2(round2(subtotal) * factor)
