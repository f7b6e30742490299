"""Tests for money arithmetic and estimate total derivation."""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from estimate_ledger.calculators import (
    apply_markup,
    area_labor_cost,
    compute_totals,
    is_valid_markup,
    money_sum,
    round2,
    to_decimal,
)

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("99999"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
markups = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
areas = st.lists(
    st.fixed_dictionaries(
        {
            "labor_hours": amounts,
            "labor_rate": st.decimals(
                min_value=Decimal("0"), max_value=Decimal("500"), places=2
            ),
            "material_cost": amounts,
        }
    ),
    min_size=1,
    max_size=8,
)


class TestMoney:
    def test_round_half_up(self):
        assert round2("2.345") == Decimal("2.35")
        assert round2("2.344") == Decimal("2.34")
        assert round2("-2.345") == Decimal("-2.35")

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert round2(0.1) + round2(0.2) == Decimal("0.30")

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert area_labor_cost(None, "50") == Decimal("0.00")

    def test_invalid_amount_raises(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", Decimal("sNaN")])
    def test_non_finite_amount_raises(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)
        with pytest.raises(ValueError):
            round2(value)

    def test_money_sum_has_no_float_drift(self):
        assert money_sum([Decimal("0.10")] * 10) == Decimal("1.00")

    def test_apply_markup(self):
        assert apply_markup(Decimal("2150.00"), Decimal("15")) == Decimal("2472.50")
        assert apply_markup(Decimal("100.00"), Decimal("0")) == Decimal("100.00")
        assert apply_markup(Decimal("0.05"), Decimal("50")) == Decimal("0.08")

    def test_markup_range(self):
        assert is_valid_markup("0") is True
        assert is_valid_markup("100") is True
        assert is_valid_markup("100.01") is False
        assert is_valid_markup("-1") is False


class TestComputeTotals:
    def test_reference_estimate(self):
        totals = compute_totals(
            [{"labor_hours": "36", "labor_rate": "50", "material_cost": "350"}],
            Decimal("15"),
        )

        assert totals.labor_cost == Decimal("1800.00")
        assert totals.material_cost == Decimal("350.00")
        assert totals.subtotal == Decimal("2150.00")
        assert totals.markup_amount == Decimal("322.50")
        assert totals.total_amount == Decimal("2472.50")

    def test_missing_inputs_count_as_zero(self):
        totals = compute_totals(
            [{"labor_hours": None, "labor_rate": "40", "material_cost": None}],
            Decimal("10"),
        )
        assert totals.total_amount == Decimal("0.00")

    def test_sums_multiple_areas(self):
        totals = compute_totals(
            [
                {"labor_hours": "10", "labor_rate": "45", "material_cost": "120.50"},
                {"labor_hours": "4.5", "labor_rate": "45", "material_cost": "80"},
            ],
            Decimal("20"),
        )
        assert totals.labor_cost == Decimal("652.50")
        assert totals.material_cost == Decimal("200.50")
        assert totals.total_amount == Decimal("1023.60")

    @settings(max_examples=200)
    @given(areas=areas, markup=markups)
    def test_derivation_is_idempotent(self, areas, markup):
        first = compute_totals(areas, markup)
        again = compute_totals(areas, first.markup_percentage)

        assert first == again
        assert first.total_amount == round2(
            (first.labor_cost + first.material_cost) * (1 + first.markup_percentage / 100)
        )

    @given(areas=areas, markup=markups)
    def test_totals_are_in_cents(self, areas, markup):
        totals = compute_totals(areas, markup)
        for value in totals.as_dict().values():
            assert value == value.quantize(Decimal("0.01"))
        assert totals.total_amount >= totals.subtotal
