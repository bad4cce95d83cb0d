"""
Tests for the aggregator.

Covers:
- Single-bill totals under each strategy
- Grouping by customer, service, month and bill
- Percentage shares computed before top-N truncation
- Stable descending ranking
- Chronological month ordering
- Supplier and cost-type rollups
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from billing_engines.aggregation import (
    Aggregator,
    GroupKey,
    Metric,
    month_label,
    parse_month_label,
    sort_periods,
)
from billing_engines.periods import DateWindow
from billing_engines.revenue import PriceBook, RevenueResolver, RevenueStrategy
from billing_kernel.domain.dtos import ReferenceItem
from tests.builders import (
    TODAY,
    cost_price,
    make_bill,
    make_cost,
    no_invoice,
    paid_on_behalf,
)


def _bill(customer_id, revenue, *costs, **kwargs):
    return make_bill(
        customer_id=customer_id,
        customer_name=f"Customer {customer_id}",
        revenue=revenue,
        costs=costs,
        **kwargs,
    )


class TestBillTotals:

    def test_end_to_end_priced_profit(self):
        """Transport 5M invoiced + delivery 2M paid-on-behalf, priced 6M + 2.5M."""
        book = PriceBook(
            cost_prices=[
                cost_price("6000000", cost_type_id="ct-transport"),
                cost_price("2500000", cost_type_id="ct-delivery"),
            ]
        )
        bill = make_bill(
            costs=(
                make_cost("5000000", cost_type_id="ct-transport"),
                paid_on_behalf("2000000", cost_type_id="ct-delivery"),
            ),
            revenue="7000000",
        )
        totals = Aggregator(resolver=RevenueResolver(book)).bill_totals(
            bill, RevenueStrategy.PRICED
        )

        assert totals.total_revenue == Decimal("8500000")
        assert totals.total_invoiced_cost == Decimal("5000000")
        assert totals.total_cost == Decimal("7000000")
        assert totals.profit == Decimal("3500000")
        assert [line.price for line in totals.priced_lines] == [
            Decimal("6000000"),
            Decimal("2500000"),
        ]

    def test_direct_strategy(self):
        bill = make_bill(costs=(make_cost(400), no_invoice(100)), revenue="1000")
        totals = Aggregator().bill_totals(bill, RevenueStrategy.DIRECT)

        assert totals.strategy is RevenueStrategy.DIRECT
        assert totals.profit == Decimal("600")
        assert totals.margin == Decimal("60")
        assert totals.result.costs.no_invoice == Decimal("100")


class TestRollupBills:

    def setup_method(self):
        self.aggregator = Aggregator()

    def test_groups_by_customer(self):
        bills = [
            _bill("a", "1000", make_cost(400)),
            _bill("b", "500", make_cost(100)),
            _bill("a", "300", paid_on_behalf(50)),
        ]
        result = self.aggregator.rollup_bills(bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT)

        rows = {row.key: row for row in result.rows}
        assert rows["a"].bill_count == 2
        assert rows["a"].revenue == Decimal("1300")
        assert rows["a"].profit == Decimal("900")
        assert rows["a"].costs.paid_on_behalf == Decimal("50")
        assert rows["b"].profit == Decimal("400")
        assert result.totals.profit == Decimal("1300")
        assert result.bill_count == 3
        assert result.transaction_count == 3

    def test_percentages_sum_to_hundred(self):
        bills = [_bill("a", "300"), _bill("b", "100"), _bill("c", "600")]
        result = self.aggregator.rollup_bills(bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT)
        assert sum(row.percentage for row in result.rows) == Decimal("100")
        assert [row.key for row in result.rows] == ["c", "a", "b"]

    def test_top_n_after_percentages(self):
        """Shares are of the full total, not of the kept rows."""
        bills = [_bill("a", "300"), _bill("b", "100"), _bill("c", "600")]
        result = self.aggregator.rollup_bills(
            bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT, top_n=1
        )
        assert len(result.rows) == 1
        assert result.rows[0].percentage == Decimal("60")
        assert result.totals.revenue == Decimal("1000")

    def test_ties_keep_first_seen_order(self):
        bills = [_bill("x", "100"), _bill("y", "100"), _bill("z", "100")]
        result = self.aggregator.rollup_bills(bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT)
        assert [row.key for row in result.rows] == ["x", "y", "z"]

    def test_zero_total_gives_zero_percentages(self):
        result = self.aggregator.rollup_bills(
            [_bill("a", None), _bill("b", None)], GroupKey.CUSTOMER, RevenueStrategy.DIRECT
        )
        assert all(row.percentage == 0 for row in result.rows)

    def test_known_groups_appear_with_zero(self):
        known = [ReferenceItem("a", "Customer a"), ReferenceItem("idle", "Idle customer")]
        result = self.aggregator.rollup_bills(
            [_bill("a", "100")],
            GroupKey.CUSTOMER,
            RevenueStrategy.DIRECT,
            known_groups=known,
        )
        idle = next(row for row in result.rows if row.key == "idle")
        assert idle.bill_count == 0
        assert idle.revenue == 0
        assert idle.label == "Idle customer"

    def test_window_filters_bills(self):
        bills = [
            _bill("a", "100", bill_date=date(2024, 12, 1)),
            _bill("a", "200", bill_date=TODAY),
        ]
        result = self.aggregator.rollup_bills(
            bills,
            GroupKey.CUSTOMER,
            RevenueStrategy.DIRECT,
            window=DateWindow(date(2025, 1, 1), TODAY),
        )
        assert result.totals.revenue == Decimal("200")
        assert result.window == DateWindow(date(2025, 1, 1), TODAY)

    def test_months_are_chronological(self):
        bills = [
            _bill("a", "1", bill_date=date(2025, 2, 3)),
            _bill("a", "999", bill_date=date(2024, 12, 30)),
            _bill("a", "5", bill_date=date(2025, 1, 9)),
        ]
        result = self.aggregator.rollup_bills(bills, GroupKey.MONTH, RevenueStrategy.DIRECT)
        assert [row.label for row in result.rows] == [
            "December 2024",
            "January 2025",
            "February 2025",
        ]
        assert result.rows[0].period_start == date(2024, 12, 1)

    def test_group_by_service_and_bill(self):
        bills = [
            make_bill(service_id="s1", bill_no="B1", revenue="10"),
            make_bill(service_id="s2", bill_no="B2", revenue="20"),
        ]
        by_service = self.aggregator.rollup_bills(bills, GroupKey.SERVICE, RevenueStrategy.DIRECT)
        by_bill = self.aggregator.rollup_bills(bills, GroupKey.BILL, RevenueStrategy.DIRECT)
        assert [row.key for row in by_service.rows] == ["s2", "s1"]
        assert [row.label for row in by_bill.rows] == ["B2", "B1"]

    def test_order_by_other_metric(self):
        bills = [_bill("a", "100", make_cost(90)), _bill("b", "50")]
        result = self.aggregator.rollup_bills(
            bills,
            GroupKey.CUSTOMER,
            RevenueStrategy.DIRECT,
            share_of=Metric.PROFIT,
            order_by=Metric.REVENUE,
        )
        assert [row.key for row in result.rows] == ["a", "b"]

    def test_empty_input(self):
        result = self.aggregator.rollup_bills([], GroupKey.CUSTOMER, RevenueStrategy.DIRECT)
        assert result.is_empty
        assert result.totals.profit == 0
        assert result.bill_count == 0

    def test_cost_group_key_rejected(self):
        with pytest.raises(ValueError):
            self.aggregator.rollup_bills([], GroupKey.SUPPLIER, RevenueStrategy.DIRECT)

    @settings(max_examples=50)
    @given(revenues=st.lists(st.integers(min_value=0, max_value=10**9), min_size=1, max_size=12))
    def test_shares_sum_to_hundred_or_all_zero(self, revenues):
        bills = [_bill(f"c{i}", str(r)) for i, r in enumerate(revenues)]
        result = Aggregator().rollup_bills(bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT)
        total = sum(row.percentage for row in result.rows)
        if sum(revenues) == 0:
            assert total == 0
        else:
            assert abs(total - Decimal("100")) < Decimal("0.0000001")


class TestRollupCosts:

    def setup_method(self):
        self.aggregator = Aggregator()
        self.costs = [
            make_cost(500, supplier_id="s1", supplier_name="Supplier 1", bill_id="b1"),
            paid_on_behalf(
                200, supplier_id="s1", supplier_name="Supplier 1", bill_id="b2",
                cost_type_id="ct-2", cost_type_name="Giao hàng",
            ),
            make_cost(300, supplier_id="s2", supplier_name="Supplier 2", bill_id="b1"),
        ]

    def test_groups_by_supplier(self):
        result = self.aggregator.rollup_costs(self.costs, GroupKey.SUPPLIER)

        first = result.rows[0]
        assert first.key == "s1"
        assert first.transaction_count == 2
        assert first.bill_count == 2
        assert first.costs.invoiced == Decimal("500")
        assert first.costs.paid_on_behalf == Decimal("200")
        assert first.average_cost == Decimal("350")
        assert first.percentage == Decimal("70")
        assert set(first.cost_type_names) == {"Chi phí vận chuyển", "Giao hàng"}
        assert result.totals.revenue == 0

    def test_cost_type_filter(self):
        result = self.aggregator.rollup_costs(self.costs, GroupKey.SUPPLIER, cost_type_id="ct-2")
        assert [row.key for row in result.rows] == ["s1"]
        assert result.rows[0].percentage == Decimal("100")

    def test_groups_by_cost_type(self):
        result = self.aggregator.rollup_costs(self.costs, GroupKey.COST_TYPE)
        assert [row.key for row in result.rows] == ["ct-1", "ct-2"]

    def test_bill_group_key_rejected(self):
        with pytest.raises(ValueError):
            self.aggregator.rollup_costs(self.costs, GroupKey.CUSTOMER)


class TestMonthLabels:

    def test_round_trip(self):
        assert month_label(date(2025, 3, 17)) == "March 2025"
        assert parse_month_label("March 2025") == date(2025, 3, 1)

    def test_sort_periods(self):
        labels = ["February 2025", "December 2024", "January 2025"]
        assert sort_periods(labels) == ["December 2024", "January 2025", "February 2025"]

    @pytest.mark.parametrize("label", ["2025-01", "Smarch 2025", "January", "January year"])
    def test_bad_labels(self, label):
        with pytest.raises(ValueError):
            parse_month_label(label)
