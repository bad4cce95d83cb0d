"""
Module: billing_engines.detail
Responsibility:
    Build the bill-detail report: one row per cost line with an even share
    of the bill's revenue, a synthetic row for bills without cost lines, a
    total row per bill, a grand-total row, and a per-cost-type summary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Revenue per line comes from the EVEN_SPLIT strategy; the lines of a
      bill sum exactly to its DIRECT revenue.
    - Line profit: invoiced lines show allocated - amount, pass-through
      lines show the allocated revenue.
    - Bill and grand totals follow the profit rule
      (revenue - invoiced costs), not the sum of line profits.
    - Sequence numbers run continuously across bills; total rows carry none.
    - Bills are listed newest first; ties keep input order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from billing_engines.aggregation import Aggregator, GroupKey
from billing_engines.classification import CostCategory, CostClassifier
from billing_engines.periods import DateWindow
from billing_engines.profit import (
    ZERO,
    CostBreakdown,
    ProfitResult,
    compute_profit,
    line_profit,
    to_amount,
)
from billing_engines.revenue import RevenueResolver
from billing_engines.tracer import traced_engine
from billing_kernel.domain.dtos import BillRecord, CostRecord
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.detail")

BILL_TOTAL_PREFIX = "Tổng"
GRAND_TOTAL_LABEL = "TỔNG CỘNG"


class DetailRowKind(str, Enum):
    COST_LINE = "cost_line"
    NO_COST = "no_cost"
    BILL_TOTAL = "bill_total"
    GRAND_TOTAL = "grand_total"


@dataclass(frozen=True)
class DetailRow:
    """
    One row of the bill-detail table.

    Contract:
        ``costs`` holds this row's amount under its category (all
        categories for total rows).
    """

    kind: DetailRowKind
    sequence: int | None
    label: str
    bill_id: str | None
    bill_no: str | None
    bill_date: date | None
    invoice_no: str | None
    package_count: int | None
    goods_type: str | None
    customer_name: str | None
    cost_type_name: str | None
    supplier_name: str | None
    category: CostCategory | None
    revenue: Decimal
    costs: CostBreakdown
    profit: Decimal

    @property
    def cost_amount(self) -> Decimal:
        return self.costs.total


@dataclass(frozen=True)
class CostTypeSummary:
    """Spend on one cost type across the report's bills."""

    cost_type_id: str
    cost_type_name: str
    bill_count: int
    transaction_count: int
    total_amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class BillDetail:
    rows: tuple[DetailRow, ...]
    cost_type_summary: tuple[CostTypeSummary, ...]
    totals: ProfitResult
    bill_count: int

    @property
    def line_rows(self) -> tuple[DetailRow, ...]:
        return tuple(
            r for r in self.rows if r.kind in (DetailRowKind.COST_LINE, DetailRowKind.NO_COST)
        )


class BillDetailBuilder:
    """
    Assemble BillDetail from bills.

    Non-goals:
        - Does not format amounts; exporters round for display.
    """

    def __init__(
        self,
        classifier: CostClassifier | None = None,
        resolver: RevenueResolver | None = None,
    ):
        self.classifier = classifier or CostClassifier()
        self.resolver = resolver or RevenueResolver()
        self.aggregator = Aggregator(self.classifier, self.resolver)

    @traced_engine("detail.build", "1.0", fingerprint_fields=("window",))
    def build(
        self,
        bills: Iterable[BillRecord],
        window: DateWindow | None = None,
    ) -> BillDetail:
        selected = [b for b in bills if window is None or window.contains(b.bill_date)]
        selected.sort(key=lambda b: b.bill_date, reverse=True)

        rows: list[DetailRow] = []
        sequence = 0
        grand_revenue = ZERO
        grand_costs = CostBreakdown()

        for bill in selected:
            split = self.resolver.split(bill)
            bill_costs = CostBreakdown()

            if not split.lines:
                sequence += 1
                rows.append(
                    self._row(
                        DetailRowKind.NO_COST,
                        sequence,
                        bill,
                        None,
                        None,
                        split.unallocated,
                        CostBreakdown(),
                        split.unallocated,
                    )
                )
            for line in split.lines:
                sequence += 1
                category = self.classifier.classify(line.cost)
                amount = to_amount(line.cost.amount)
                line_costs = CostBreakdown().add(category, amount)
                bill_costs = bill_costs + line_costs
                rows.append(
                    self._row(
                        DetailRowKind.COST_LINE,
                        sequence,
                        bill,
                        line.cost,
                        category,
                        line.allocated,
                        line_costs,
                        line_profit(line.allocated, amount, category),
                    )
                )

            bill_result = compute_profit(split.revenue, bill_costs)
            rows.append(
                DetailRow(
                    kind=DetailRowKind.BILL_TOTAL,
                    sequence=None,
                    label=f"{BILL_TOTAL_PREFIX} {bill.bill_no}",
                    bill_id=bill.bill_id,
                    bill_no=bill.bill_no,
                    bill_date=bill.bill_date,
                    invoice_no=bill.invoice_no,
                    package_count=bill.package_count,
                    goods_type=bill.goods_type,
                    customer_name=bill.customer_name,
                    cost_type_name=None,
                    supplier_name=None,
                    category=None,
                    revenue=bill_result.revenue,
                    costs=bill_costs,
                    profit=bill_result.profit,
                )
            )
            grand_revenue += split.revenue
            grand_costs = grand_costs + bill_costs

        totals = compute_profit(grand_revenue, grand_costs)
        if selected:
            rows.append(
                DetailRow(
                    kind=DetailRowKind.GRAND_TOTAL,
                    sequence=None,
                    label=GRAND_TOTAL_LABEL,
                    bill_id=None,
                    bill_no=None,
                    bill_date=None,
                    invoice_no=None,
                    package_count=None,
                    goods_type=None,
                    customer_name=None,
                    cost_type_name=None,
                    supplier_name=None,
                    category=None,
                    revenue=totals.revenue,
                    costs=grand_costs,
                    profit=totals.profit,
                )
            )

        summary = self._cost_type_summary(c for b in selected for c in b.costs)
        logger.debug(
            "bill_detail_built",
            extra={"bill_count": len(selected), "row_count": len(rows)},
        )
        return BillDetail(
            rows=tuple(rows),
            cost_type_summary=summary,
            totals=totals,
            bill_count=len(selected),
        )

    def _cost_type_summary(self, costs: Iterable[CostRecord]) -> tuple[CostTypeSummary, ...]:
        rollup = self.aggregator.rollup_costs(costs, GroupKey.COST_TYPE)
        return tuple(
            CostTypeSummary(
                cost_type_id=row.key,
                cost_type_name=row.label,
                bill_count=row.bill_count,
                transaction_count=row.transaction_count,
                total_amount=row.total_costs,
                percentage=row.percentage,
            )
            for row in rollup.rows
        )

    @staticmethod
    def _row(
        kind: DetailRowKind,
        sequence: int,
        bill: BillRecord,
        cost: CostRecord | None,
        category: CostCategory | None,
        revenue: Decimal,
        costs: CostBreakdown,
        profit: Decimal,
    ) -> DetailRow:
        return DetailRow(
            kind=kind,
            sequence=sequence,
            label=bill.bill_no,
            bill_id=bill.bill_id,
            bill_no=bill.bill_no,
            bill_date=bill.bill_date,
            invoice_no=bill.invoice_no,
            package_count=bill.package_count,
            goods_type=bill.goods_type,
            customer_name=bill.customer_name,
            cost_type_name=cost.cost_type_name if cost else None,
            supplier_name=cost.supplier_name if cost else None,
            category=category,
            revenue=revenue,
            costs=costs,
            profit=profit,
        )
