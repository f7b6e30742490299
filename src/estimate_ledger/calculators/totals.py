"""Authoritative derivation of estimate totals from project areas.

This is the only place labor_cost, material_cost and total_amount are
computed. Every code path that changes areas or markup calls
compute_totals; stored totals are never taken from caller input.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from estimate_ledger.calculators.money import apply_markup, money_sum, round2, to_decimal

MIN_MARKUP = Decimal("0")
MAX_MARKUP = Decimal("100")


@dataclass(frozen=True)
class EstimateTotals:
    """Derived commercial totals for an estimate."""

    labor_cost: Decimal
    material_cost: Decimal
    markup_percentage: Decimal
    total_amount: Decimal

    @property
    def subtotal(self) -> Decimal:
        return round2(self.labor_cost + self.material_cost)

    @property
    def markup_amount(self) -> Decimal:
        return round2(self.total_amount - self.subtotal)

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "labor_cost": self.labor_cost,
            "material_cost": self.material_cost,
            "markup_percentage": self.markup_percentage,
            "total_amount": self.total_amount,
        }


def _field(area: Any, name: str) -> Any:
    if isinstance(area, dict):
        return area.get(name)
    return getattr(area, name, None)


def area_labor_cost(labor_hours: Any, labor_rate: Any) -> Decimal:
    """Labor cost of one area: hours x rate, missing inputs count as zero."""
    return round2(to_decimal(labor_hours) * to_decimal(labor_rate))


def compute_totals(areas: Iterable[Any], markup_percentage: Any) -> EstimateTotals:
    """Compute totals from project areas (ORM rows or dicts) and markup."""
    area_list = list(areas)
    labor = money_sum(
        area_labor_cost(_field(a, "labor_hours"), _field(a, "labor_rate"))
        for a in area_list
    )
    material = money_sum(_field(a, "material_cost") for a in area_list)
    markup = round2(markup_percentage)
    return EstimateTotals(
        labor_cost=labor,
        material_cost=material,
        markup_percentage=markup,
        total_amount=apply_markup(labor + material, markup),
    )


def is_valid_markup(markup_percentage: Any) -> bool:
    return MIN_MARKUP <= to_decimal(markup_percentage) <= MAX_MARKUP
