"""
Tests for BillingReportService against a real (SQLite) database.

Covers:
- Single bill totals under the priced strategy
- Bill listing filters and request validation
- Dashboard totals, top lists and trends
- Customer, supplier, profit-and-loss and bill-detail reports
- Metadata provenance for live answers
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_config import BillingConfig
from billing_engines.classification import CostCategory
from billing_engines.detail import DetailRowKind
from billing_engines.revenue import RevenueStrategy
from billing_kernel.exceptions import (
    BillNotFoundError,
    InvalidDateRangeError,
    InvalidFilterError,
    InvalidTimeframeError,
)
from billing_services import BillingReportService, DataSource, ReportType, render_to_dict
from billing_services.resilient import ResilientQueryExecutor
from tests.builders import TODAY


@pytest.fixture
def service(session_factory, clock):
    svc = BillingReportService(
        session_factory,
        clock,
        BillingConfig.with_defaults(),
        ResilientQueryExecutor(timeout_ms=5000),
    )
    yield svc
    svc.close()


@pytest.fixture
def abc_bill(persist_bill, persist_prices):
    """Transport 5M invoiced + delivery 2M paid-on-behalf, revenue 7M."""
    persist_prices()
    return persist_bill(
        bill_no="BILL001",
        costs=[
            ("transport", "sup1", "5000000", None),
            ("delivery", "sup2", "2000000", "Trả hộ"),
        ],
        revenue="7000000",
    )


class TestGetBill:

    def test_priced_profit(self, service, abc_bill):
        report = service.get_bill(str(abc_bill.id))
        totals = report.totals

        assert report.metadata.report_type is ReportType.BILL
        assert report.metadata.data_source is DataSource.LIVE
        assert report.metadata.strategy is RevenueStrategy.PRICED
        assert report.metadata.currency == "VND"
        assert totals.total_revenue == Decimal("8500000")
        assert totals.total_invoiced_cost == Decimal("5000000")
        assert totals.total_cost == Decimal("7000000")
        assert totals.profit == Decimal("3500000")
        assert totals.list_price == Decimal("7000000")
        assert [c.category for c in totals.classified] == [
            CostCategory.INVOICED,
            CostCategory.PAID_ON_BEHALF,
        ]

    def test_unknown_bill(self, service, reference_data):
        with pytest.raises(BillNotFoundError) as exc_info:
            service.get_bill(str(uuid4()))
        assert exc_info.value.http_status == 404

    def test_malformed_id_is_not_found(self, service, reference_data):
        with pytest.raises(BillNotFoundError):
            service.get_bill("not-a-bill")

    def test_completion_logged(self, service, abc_bill, captured_logs):
        service.get_bill(str(abc_bill.id))
        completed = [r for r in captured_logs() if r["message"] == "report_completed"]
        assert completed[-1]["data_source"] == "live"
        assert completed[-1]["report"] == "bill"
        assert completed[-1]["bill_id"] == str(abc_bill.id)

    def test_render_to_dict(self, service, abc_bill):
        body = render_to_dict(service.get_bill(str(abc_bill.id)))

        json.dumps(body)
        assert body["metadata"]["report_type"] == "bill"
        assert body["metadata"]["data_source"] == "live"
        assert body["metadata"]["fallback_reason"] is None
        assert body["metadata"]["as_of_date"] == "2025-01-15"
        assert body["metadata"]["generated_at"] == "2025-01-15T12:00:00+00:00"
        assert Decimal(body["totals"]["result"]["profit"]) == Decimal("3500000")
        assert [c["category"] for c in body["totals"]["classified"]] == [
            "invoiced",
            "paid_on_behalf",
        ]
        assert body["totals"]["bill"]["bill_date"] == TODAY.isoformat()


class TestListBills:

    def test_newest_first_with_totals(self, service, persist_bill):
        persist_bill(bill_no="BILL001", bill_date=date(2025, 1, 2), revenue="100")
        persist_bill(bill_no="BILL002", bill_date=date(2025, 1, 9), revenue="200")

        report = service.list_bills()
        assert report.count == 2
        assert [t.bill.bill_no for t in report.bills] == ["BILL002", "BILL001"]
        assert report.metadata.strategy is RevenueStrategy.PRICED

    def test_filters(self, service, persist_bill, reference_data):
        persist_bill(bill_no="BILL001", customer="abc", status="Completed")
        persist_bill(bill_no="BILL002", customer="xyz", status="Pending")
        persist_bill(bill_no="X-003", customer="abc", status="Pending")

        by_customer = service.list_bills(customer_id=str(reference_data["abc"].id))
        assert {t.bill.bill_no for t in by_customer.bills} == {"BILL001", "X-003"}

        by_status = service.list_bills(status="Pending")
        assert {t.bill.bill_no for t in by_status.bills} == {"BILL002", "X-003"}

        by_number = service.list_bills(bill_no="bill")
        assert {t.bill.bill_no for t in by_number.bills} == {"BILL001", "BILL002"}

        limited = service.list_bills(limit=1)
        assert limited.count == 1

    def test_date_range(self, service, persist_bill):
        persist_bill(bill_no="OLD", bill_date=date(2024, 11, 1))
        persist_bill(bill_no="NEW", bill_date=TODAY)

        report = service.list_bills(date_from="2025-01-01", date_to="2025-01-31")
        assert [t.bill.bill_no for t in report.bills] == ["NEW"]
        assert report.metadata.period_start == date(2025, 1, 1)

    @pytest.mark.parametrize("limit", [0, -3, "10", True])
    def test_bad_limit(self, service, limit):
        with pytest.raises(InvalidFilterError):
            service.list_bills(limit=limit)

    def test_bad_customer_id(self, service):
        with pytest.raises(InvalidFilterError) as exc_info:
            service.list_bills(customer_id="abc")
        assert exc_info.value.field == "customer_id"

    def test_inverted_dates(self, service):
        with pytest.raises(InvalidDateRangeError):
            service.list_bills(date_from="2025-02-01", date_to="2025-01-01")


class TestDashboard:

    def test_totals_and_top_lists(self, service, persist_bill):
        persist_bill(
            bill_no="BILL001",
            customer="abc",
            costs=[("transport", "sup1", "400", None), ("delivery", "sup2", "100", "Trả hộ")],
            revenue="1000",
        )
        persist_bill(bill_no="BILL002", customer="xyz", service="lcl", revenue="300")

        summary = service.dashboard()

        assert summary.totals.bill_count == 2
        assert summary.totals.revenue == Decimal("1300")
        assert summary.totals.total_costs == Decimal("500")
        assert summary.totals.profit == Decimal("900")
        assert [row.label for row in summary.top_customers] == ["Công ty ABC", "Công ty XYZ"]
        assert len(summary.top_services) == 2
        assert summary.metadata.strategy is RevenueStrategy.DIRECT

    def test_trends(self, service, persist_bill):
        persist_bill(bill_no="NOW", bill_date=TODAY, revenue="300")
        persist_bill(bill_no="BEFORE", bill_date=date(2024, 11, 30), revenue="200")

        trends = service.dashboard().trends

        assert trends.current_window.end == TODAY
        assert trends.revenue == Decimal("50")
        assert trends.bills == Decimal("0")

    def test_empty_database(self, service, reference_data):
        summary = service.dashboard()
        assert summary.totals.bill_count == 0
        assert summary.totals.margin == 0
        assert summary.top_customers == ()
        assert summary.trends.revenue == Decimal("100")


class TestCustomerReport:

    def test_includes_customers_without_bills(self, service, persist_bill):
        persist_bill(bill_no="BILL001", customer="abc", revenue="1000")
        persist_bill(
            bill_no="BILL002",
            customer="xyz",
            costs=[("transport", "sup1", "100", None)],
            revenue="400",
        )

        report = service.customer_report()
        rows = {row.label: row for row in report.rows}

        assert set(rows) == {"Công ty ABC", "Công ty XYZ", "Công ty Không Hóa Đơn"}
        assert rows["Công ty Không Hóa Đơn"].bill_count == 0
        assert rows["Công ty ABC"].percentage == Decimal("1000") / Decimal("1300") * 100
        assert report.totals.profit == Decimal("1300")
        assert report.metadata.timeframe == "month"

    def test_custom_range_excludes_other_bills(self, service, persist_bill):
        persist_bill(bill_no="OLD", bill_date=date(2024, 6, 1), revenue="999")
        persist_bill(bill_no="NEW", revenue="1")

        report = service.customer_report("custom", "2025-01-01", "2025-01-31")
        assert report.totals.revenue == Decimal("1")
        assert report.bill_count == 1

    def test_unknown_timeframe(self, service):
        with pytest.raises(InvalidTimeframeError):
            service.customer_report("fortnight")


class TestSupplierReport:

    def test_ranked_by_total_cost(self, service, persist_bill, reference_data):
        persist_bill(
            bill_no="BILL001",
            costs=[
                ("transport", "sup1", "300", None),
                ("delivery", "sup2", "700", "Ko hóa đơn"),
            ],
        )
        report = service.supplier_report("week")

        assert [row.label for row in report.rows] == ["Nhà cung cấp 2", "Nhà cung cấp 1"]
        assert report.rows[0].costs.no_invoice == Decimal("700")
        assert report.totals.total == Decimal("1000")
        assert report.transaction_count == 2

    def test_cost_type_filter(self, service, persist_bill, reference_data):
        persist_bill(
            costs=[("transport", "sup1", "300", None), ("delivery", "sup2", "700", None)]
        )
        report = service.supplier_report(cost_type_id=str(reference_data["transport"].id))
        assert [row.label for row in report.rows] == ["Nhà cung cấp 1"]
        assert report.cost_type_id == str(reference_data["transport"].id)

    def test_bad_cost_type_id(self, service):
        with pytest.raises(InvalidFilterError):
            service.supplier_report(cost_type_id="transport")


class TestProfitLossReport:

    def test_monthly_periods(self, service, persist_bill):
        persist_bill(bill_no="JAN", bill_date=TODAY, revenue="500")
        persist_bill(
            bill_no="DEC",
            bill_date=date(2024, 12, 5),
            costs=[("transport", "sup1", "100", None)],
            revenue="300",
        )

        report = service.profit_loss_report("quarter")

        assert [p.label for p in report.periods] == ["December 2024", "January 2025"]
        assert report.summary.total_revenue == Decimal("800")
        assert report.summary.net_profit == Decimal("700")
        assert report.summary.bill_count == 2
        assert report.metadata.period_end == TODAY


class TestBillDetailReport:

    def test_default_window(self, service, persist_bill):
        persist_bill(
            bill_no="BILL001",
            costs=[("transport", "sup1", "100", None), ("delivery", "sup2", "200", "Trả hộ")],
            revenue="1000",
        )
        persist_bill(bill_no="ANCIENT", bill_date=date(2024, 1, 1), revenue="5")

        report = service.bill_detail_report()
        detail = report.detail

        assert report.metadata.strategy is RevenueStrategy.EVEN_SPLIT
        assert report.metadata.period_start == date(2024, 10, 17)
        assert detail.bill_count == 1
        assert [r.revenue for r in detail.line_rows] == [Decimal("500"), Decimal("500")]
        assert detail.rows[-1].kind is DetailRowKind.GRAND_TOTAL
        assert detail.totals.profit == Decimal("900")

    def test_explicit_range(self, service, persist_bill):
        persist_bill(bill_no="ANCIENT", bill_date=date(2024, 1, 1), revenue="5")
        report = service.bill_detail_report("2024-01-01", "2024-01-31")
        assert report.detail.bill_count == 1
        assert report.metadata.timeframe == "custom"
