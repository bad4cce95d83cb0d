"""
Tests for the profit calculator.

Covers:
- profit = revenue - invoiced costs
- Pass-through costs never change profit
- Margin guard for zero and negative revenue
- Tolerant amount coercion
- Trend and share arithmetic
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from billing_engines.classification import ClassifiedCost, CostCategory
from billing_engines.profit import (
    HUNDRED,
    ZERO,
    CostBreakdown,
    ProfitResult,
    compute_margin,
    compute_profit,
    line_profit,
    round_amount,
    safe_percentage,
    to_amount,
    trend_percentage,
)
from tests.builders import make_cost

amounts = st.decimals(min_value=0, max_value=10**12, places=2, allow_nan=False, allow_infinity=False)


class TestComputeProfit:
    """Profit rule."""

    def test_profit_subtracts_invoiced_only(self):
        costs = CostBreakdown(
            invoiced=Decimal("5000000"),
            paid_on_behalf=Decimal("2000000"),
            no_invoice=Decimal("300000"),
        )
        result = compute_profit(Decimal("8500000"), costs)

        assert result.profit == Decimal("3500000")
        assert result.total_costs == Decimal("7300000")

    def test_margin(self):
        result = compute_profit(Decimal("200"), CostBreakdown(invoiced=Decimal("150")))
        assert result.margin == Decimal("25")

    def test_zero_revenue_margin_is_zero(self):
        result = compute_profit(ZERO, CostBreakdown(invoiced=Decimal("100")))
        assert result.profit == Decimal("-100")
        assert result.margin == ZERO

    def test_negative_revenue_margin_is_zero(self):
        assert compute_margin(Decimal("-50"), Decimal("-10")) == ZERO

    def test_zero_result(self):
        zero = ProfitResult.zero()
        assert zero.revenue == ZERO
        assert zero.total_costs == ZERO
        assert zero.margin == ZERO

    @given(revenue=amounts, invoiced=amounts, pass_through=amounts)
    def test_pass_through_never_changes_profit(self, revenue, invoiced, pass_through):
        base = compute_profit(revenue, CostBreakdown(invoiced=invoiced))
        with_pass = compute_profit(
            revenue,
            CostBreakdown(invoiced=invoiced, paid_on_behalf=pass_through, no_invoice=pass_through),
        )
        assert with_pass.profit == base.profit
        assert with_pass.margin == base.margin


class TestCostBreakdown:

    def test_from_classified(self):
        classified = [
            ClassifiedCost(make_cost(100), CostCategory.INVOICED),
            ClassifiedCost(make_cost(40), CostCategory.PAID_ON_BEHALF),
            ClassifiedCost(make_cost(60), CostCategory.INVOICED),
            ClassifiedCost(make_cost(5), CostCategory.NO_INVOICE),
        ]
        breakdown = CostBreakdown.from_classified(classified)

        assert breakdown.invoiced == Decimal("160")
        assert breakdown.paid_on_behalf == Decimal("40")
        assert breakdown.no_invoice == Decimal("5")
        assert breakdown.total == Decimal("205")
        assert breakdown.pass_through == Decimal("45")

    def test_add_returns_new_instance(self):
        empty = CostBreakdown()
        added = empty.add(CostCategory.PAID_ON_BEHALF, "10.50")
        assert empty.paid_on_behalf == ZERO
        assert added.paid_on_behalf == Decimal("10.50")
        assert added.amount_for(CostCategory.PAID_ON_BEHALF) == Decimal("10.50")

    def test_sum(self):
        a = CostBreakdown(invoiced=Decimal("1"), no_invoice=Decimal("2"))
        b = CostBreakdown(invoiced=Decimal("3"), paid_on_behalf=Decimal("4"))
        assert a + b == CostBreakdown(Decimal("4"), Decimal("4"), Decimal("2"))


class TestAmountCoercion:

    @pytest.mark.parametrize(
        "value,expected",
        [
            (Decimal("12.34"), Decimal("12.34")),
            (5, Decimal("5")),
            ("7.25", Decimal("7.25")),
            (0.1, Decimal("0.1")),
            (None, ZERO),
            ("abc", ZERO),
            (float("nan"), ZERO),
            (Decimal("Infinity"), ZERO),
            (True, ZERO),
            (object(), ZERO),
        ],
    )
    def test_to_amount(self, value, expected):
        assert to_amount(value) == expected

    def test_round_half_up(self):
        assert round_amount(Decimal("2.345")) == Decimal("2.35")
        assert round_amount(Decimal("-2.345")) == Decimal("-2.35")


class TestPercentages:

    def test_safe_percentage(self):
        assert safe_percentage(Decimal("25"), Decimal("200")) == Decimal("12.5")

    def test_safe_percentage_zero_whole(self):
        assert safe_percentage(Decimal("25"), ZERO) == ZERO

    def test_trend(self):
        assert trend_percentage(Decimal("150"), Decimal("100")) == Decimal("50")
        assert trend_percentage(Decimal("50"), Decimal("100")) == Decimal("-50")

    def test_trend_previous_zero_is_hundred(self):
        assert trend_percentage(Decimal("0"), ZERO) == HUNDRED
        assert trend_percentage(Decimal("999"), ZERO) == HUNDRED


class TestLineProfit:

    def test_invoiced_line(self):
        assert line_profit(Decimal("300000"), Decimal("100000"), CostCategory.INVOICED) == (
            Decimal("200000")
        )

    def test_pass_through_line_keeps_allocated_revenue(self):
        assert line_profit(
            Decimal("300000"), Decimal("100000"), CostCategory.PAID_ON_BEHALF
        ) == Decimal("300000")
