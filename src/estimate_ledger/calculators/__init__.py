"""Money arithmetic and total derivation."""

from estimate_ledger.calculators.money import apply_markup, money_sum, round2, to_decimal
from estimate_ledger.calculators.totals import (
    EstimateTotals,
    area_labor_cost,
    compute_totals,
    is_valid_markup,
)

__all__ = [
    "apply_markup",
    "money_sum",
    "round2",
    "to_decimal",
    "EstimateTotals",
    "area_labor_cost",
    "compute_totals",
    "is_valid_markup",
]
