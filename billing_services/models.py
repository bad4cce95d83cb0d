"""
Report DTOs (``billing_services.models``).

Responsibility
--------------
Frozen dataclass value objects returned by ``BillingReportService``:
single bill, bill list, dashboard, customer, supplier, profit-and-loss and
bill-detail reports, each with a ``ReportMetadata`` header that records
when the report was generated and whether it came from live data.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
* ``render_to_dict`` turns any report into JSON-safe primitives.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_engines.aggregation import BillTotals, Rollup
from billing_engines.detail import BillDetail
from billing_engines.periods import DateWindow
from billing_engines.profit import CostBreakdown, ProfitResult
from billing_engines.revenue import RevenueStrategy
from billing_services.resilient import DataSource, FallbackReason


class ReportType(str, Enum):
    BILL = "bill"
    BILL_LIST = "bill_list"
    DASHBOARD = "dashboard"
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    PROFIT_LOSS = "profit_loss"
    BILL_DETAIL = "bill_detail"


@dataclass(frozen=True)
class ReportMetadata:
    """Header attached to every report."""

    report_type: ReportType
    currency: str
    as_of_date: date
    generated_at: str  # ISO timestamp from the injected clock
    data_source: DataSource
    fallback_reason: FallbackReason | None = None
    strategy: RevenueStrategy | None = None
    timeframe: str | None = None
    period_start: date | None = None
    period_end: date | None = None

    @property
    def is_degraded(self) -> bool:
        return self.data_source is DataSource.FALLBACK


@dataclass(frozen=True)
class BillReport:
    metadata: ReportMetadata
    totals: BillTotals


@dataclass(frozen=True)
class BillListReport:
    metadata: ReportMetadata
    bills: tuple[BillTotals, ...]

    @property
    def count(self) -> int:
        return len(self.bills)


@dataclass(frozen=True)
class DashboardTotals:
    bill_count: int
    revenue: Decimal
    costs: CostBreakdown
    total_costs: Decimal
    profit: Decimal
    margin: Decimal


@dataclass(frozen=True)
class DashboardTrends:
    """Percent change of the current trailing window over the one before."""

    bills: Decimal
    revenue: Decimal
    costs: Decimal
    profit: Decimal
    current_window: DateWindow
    previous_window: DateWindow


@dataclass(frozen=True)
class DashboardSummary:
    metadata: ReportMetadata
    totals: DashboardTotals
    top_customers: tuple[Rollup, ...]
    top_services: tuple[Rollup, ...]
    trends: DashboardTrends


@dataclass(frozen=True)
class CustomerReport:
    metadata: ReportMetadata
    rows: tuple[Rollup, ...]
    totals: ProfitResult
    bill_count: int


@dataclass(frozen=True)
class SupplierReport:
    metadata: ReportMetadata
    rows: tuple[Rollup, ...]
    totals: CostBreakdown
    transaction_count: int
    cost_type_id: str | None = None


@dataclass(frozen=True)
class ProfitLossSummary:
    total_revenue: Decimal
    costs: CostBreakdown
    total_costs: Decimal
    net_profit: Decimal
    profit_margin: Decimal
    bill_count: int


@dataclass(frozen=True)
class ProfitLossReport:
    metadata: ReportMetadata
    summary: ProfitLossSummary
    periods: tuple[Rollup, ...]


@dataclass(frozen=True)
class BillDetailReport:
    metadata: ReportMetadata
    detail: BillDetail


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to plain data for JSON serialization.

    Decimal and UUID become strings, dates ISO strings, enums their value,
    dataclasses dicts and tuples lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(render_to_dict(k)): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: render_to_dict(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
