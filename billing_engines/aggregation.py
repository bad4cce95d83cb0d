"""
Module: billing_engines.aggregation
Responsibility:
    Roll bill and cost figures up along a dimension -- customer, service,
    calendar month, bill, supplier or cost type -- with revenue, classified
    cost totals, profit, margin and percentage shares.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Composes the classifier,
    the revenue resolver and the profit calculator.

Invariants enforced:
    - One revenue strategy per rollup.
    - Percentages are shares of the sum over ALL buckets, computed before
      any top-N truncation; they sum to 100 or are all 0.
    - Ranking is descending and stable: equal values keep first-seen order.
    - Month buckets are labelled "<MonthName> <Year>" and ordered
      chronologically, never lexicographically.
    - Empty input gives no rows and zero totals.

Failure modes:
    - ValueError for a group key that does not apply (e.g. SUPPLIER for a
      bill rollup) or an unparsable month label.

Usage:
    aggregator = Aggregator(CostClassifier(), RevenueResolver(book))
    result = aggregator.rollup_bills(
        bills, GroupKey.CUSTOMER, RevenueStrategy.DIRECT, top_n=5,
    )
    for row in result.rows:
        print(row.label, row.profit, row.percentage)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from billing_engines.classification import ClassifiedCost, CostClassifier
from billing_engines.periods import DateWindow
from billing_engines.profit import (
    ZERO,
    CostBreakdown,
    ProfitResult,
    compute_profit,
    safe_percentage,
)
from billing_engines.revenue import PricedLine, RevenueResolver, RevenueStrategy
from billing_engines.tracer import traced_engine
from billing_kernel.domain.dtos import BillRecord, CostRecord, ReferenceItem
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")


class GroupKey(str, Enum):
    """Dimension a rollup groups by."""

    CUSTOMER = "customer"
    SERVICE = "service"
    MONTH = "month"
    BILL = "bill"
    SUPPLIER = "supplier"
    COST_TYPE = "cost_type"


BILL_GROUP_KEYS = frozenset(
    {GroupKey.CUSTOMER, GroupKey.SERVICE, GroupKey.MONTH, GroupKey.BILL}
)
COST_GROUP_KEYS = frozenset({GroupKey.SUPPLIER, GroupKey.COST_TYPE})


class Metric(str, Enum):
    """Figure used for percentage shares and ranking."""

    REVENUE = "revenue"
    PROFIT = "profit"
    TOTAL_COSTS = "total_costs"
    INVOICED_COSTS = "invoiced_costs"


_METRIC_GETTERS: dict[Metric, Callable[[ProfitResult], Decimal]] = {
    Metric.REVENUE: lambda r: r.revenue,
    Metric.PROFIT: lambda r: r.profit,
    Metric.TOTAL_COSTS: lambda r: r.total_costs,
    Metric.INVOICED_COSTS: lambda r: r.costs.invoiced,
}


# ---------------------------------------------------------------------------
# Month labels
# ---------------------------------------------------------------------------

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
_MONTH_INDEX = {name.casefold(): i + 1 for i, name in enumerate(MONTH_NAMES)}


def month_label(value: date) -> str:
    """Label of the month containing ``value``, e.g. "January 2025"."""
    return f"{MONTH_NAMES[value.month - 1]} {value.year}"


def parse_month_label(label: str) -> date:
    """First day of the month named by a "<MonthName> <Year>" label."""
    parts = label.split()
    if len(parts) != 2 or parts[0].casefold() not in _MONTH_INDEX:
        raise ValueError(f"Not a month label: {label!r}")
    try:
        year = int(parts[1])
    except ValueError:
        raise ValueError(f"Not a month label: {label!r}") from None
    return date(year, _MONTH_INDEX[parts[0].casefold()], 1)


def sort_periods(labels: Iterable[str]) -> list[str]:
    """Month labels in chronological order."""
    return sorted(labels, key=parse_month_label)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rollup:
    """
    Figures for one bucket of a rollup.

    Guarantees:
        - percentage is this bucket's share of the rollup-wide metric.
        - bill_count counts distinct bills; transaction_count counts cost
          lines.
    """

    key: str
    label: str
    bill_count: int
    transaction_count: int
    result: ProfitResult
    percentage: Decimal
    cost_type_names: tuple[str, ...] = ()
    period_start: date | None = None

    @property
    def revenue(self) -> Decimal:
        return self.result.revenue

    @property
    def costs(self) -> CostBreakdown:
        return self.result.costs

    @property
    def total_costs(self) -> Decimal:
        return self.result.total_costs

    @property
    def profit(self) -> Decimal:
        return self.result.profit

    @property
    def margin(self) -> Decimal:
        return self.result.margin

    @property
    def average_cost(self) -> Decimal:
        if self.transaction_count == 0:
            return ZERO
        return self.total_costs / self.transaction_count


@dataclass(frozen=True)
class RollupResult:
    """Rows of a rollup plus totals over every bucket (before truncation)."""

    group_key: GroupKey
    rows: tuple[Rollup, ...]
    totals: ProfitResult
    bill_count: int
    transaction_count: int
    window: DateWindow | None = None

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class BillTotals:
    """
    Revenue, classified costs and profit of a single bill.

    Contract:
        ``result.revenue`` follows ``strategy``; ``priced_lines`` always
        lists the cost-price match of every line for display.
    """

    bill: BillRecord
    strategy: RevenueStrategy
    classified: tuple[ClassifiedCost, ...]
    result: ProfitResult
    priced_lines: tuple[PricedLine, ...] = ()
    list_price: Decimal | None = None

    @property
    def total_revenue(self) -> Decimal:
        return self.result.revenue

    @property
    def total_cost(self) -> Decimal:
        return self.result.total_costs

    @property
    def total_invoiced_cost(self) -> Decimal:
        return self.result.costs.invoiced

    @property
    def profit(self) -> Decimal:
        return self.result.profit

    @property
    def margin(self) -> Decimal:
        return self.result.margin


@dataclass
class _Bucket:
    key: str
    label: str
    period_start: date | None = None
    revenue: Decimal = ZERO
    classified: list[ClassifiedCost] = field(default_factory=list)
    bill_ids: dict[str, None] = field(default_factory=dict)
    cost_type_names: dict[str, None] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class Aggregator:
    """
    Compute bill totals and dimensional rollups.

    Contract:
        Pure; results depend only on the records passed in, the classifier
        rules and the price book.
    Non-goals:
        - Does not fetch data or choose strategies.
    """

    def __init__(
        self,
        classifier: CostClassifier | None = None,
        resolver: RevenueResolver | None = None,
    ):
        self.classifier = classifier or CostClassifier()
        self.resolver = resolver or RevenueResolver()

    def bill_totals(self, bill: BillRecord, strategy: RevenueStrategy) -> BillTotals:
        """Totals for one bill under ``strategy``."""
        classified = tuple(
            ClassifiedCost(cost=c, category=self.classifier.classify(c)) for c in bill.costs
        )
        revenue = self.resolver.resolve(bill, strategy)
        return BillTotals(
            bill=bill,
            strategy=strategy,
            classified=classified,
            result=compute_profit(revenue, CostBreakdown.from_classified(classified)),
            priced_lines=self.resolver.resolve_priced(bill),
            list_price=self.resolver.list_price(bill),
        )

    @traced_engine(
        "aggregation.rollup_bills",
        "1.0",
        fingerprint_fields=("group_key", "strategy", "window", "share_of", "top_n"),
    )
    def rollup_bills(
        self,
        bills: Iterable[BillRecord],
        group_key: GroupKey,
        strategy: RevenueStrategy,
        *,
        window: DateWindow | None = None,
        share_of: Metric = Metric.PROFIT,
        order_by: Metric | None = None,
        top_n: int | None = None,
        known_groups: Sequence[ReferenceItem] = (),
    ) -> RollupResult:
        """
        Group bills by customer, service, month or bill.

        Args:
            bills: Bills with their cost and revenue lines.
            group_key: One of CUSTOMER, SERVICE, MONTH, BILL.
            strategy: Revenue strategy applied to every bill.
            window: Only bills dated inside the window count.
            share_of: Metric whose share each row's percentage reports.
            order_by: Ranking metric; defaults to ``share_of``.  Ignored for
                MONTH, which is always chronological.
            top_n: Keep only the first N rows after ranking.
            known_groups: Buckets created up front (in this order) so groups
                without bills still appear with zero figures.
        """
        if group_key not in BILL_GROUP_KEYS:
            raise ValueError(f"Group key {group_key.value!r} does not apply to bills")

        buckets: dict[str, _Bucket] = {
            item.item_id: _Bucket(key=item.item_id, label=item.name) for item in known_groups
        }
        for bill in bills:
            if window is not None and not window.contains(bill.bill_date):
                continue
            key, label, period_start = self._bill_group(bill, group_key)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _Bucket(key=key, label=label, period_start=period_start)
            bucket.revenue += self.resolver.resolve(bill, strategy)
            bucket.bill_ids[bill.bill_id] = None
            for cost in bill.costs:
                bucket.classified.append(
                    ClassifiedCost(cost=cost, category=self.classifier.classify(cost))
                )
                bucket.cost_type_names[cost.cost_type_name] = None

        return self._finish(
            group_key,
            buckets.values(),
            window=window,
            share_of=share_of,
            order_by=order_by or share_of,
            top_n=top_n,
        )

    @traced_engine(
        "aggregation.rollup_costs",
        "1.0",
        fingerprint_fields=("group_key", "window", "cost_type_id", "top_n"),
    )
    def rollup_costs(
        self,
        costs: Iterable[CostRecord],
        group_key: GroupKey,
        *,
        window: DateWindow | None = None,
        cost_type_id: str | None = None,
        top_n: int | None = None,
    ) -> RollupResult:
        """
        Group cost lines by supplier or cost type.

        Shares and ranking use total costs.  Buckets without cost lines
        never appear.  Revenue is zero throughout.
        """
        if group_key not in COST_GROUP_KEYS:
            raise ValueError(f"Group key {group_key.value!r} does not apply to costs")

        buckets: dict[str, _Bucket] = {}
        for cost in costs:
            if window is not None and not window.contains(cost.cost_date):
                continue
            if cost_type_id is not None and cost.cost_type_id != cost_type_id:
                continue
            if group_key is GroupKey.SUPPLIER:
                key, label = cost.supplier_id, cost.supplier_name
            else:
                key, label = cost.cost_type_id, cost.cost_type_name
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = _Bucket(key=key, label=label)
            bucket.classified.append(
                ClassifiedCost(cost=cost, category=self.classifier.classify(cost))
            )
            bucket.bill_ids[cost.bill_id] = None
            bucket.cost_type_names[cost.cost_type_name] = None

        return self._finish(
            group_key,
            buckets.values(),
            window=window,
            share_of=Metric.TOTAL_COSTS,
            order_by=Metric.TOTAL_COSTS,
            top_n=top_n,
        )

    # -------------------------------------------------------------------

    @staticmethod
    def _bill_group(bill: BillRecord, group_key: GroupKey) -> tuple[str, str, date | None]:
        match group_key:
            case GroupKey.CUSTOMER:
                return bill.customer_id, bill.customer_name, None
            case GroupKey.SERVICE:
                return bill.service_id, bill.service_name, None
            case GroupKey.MONTH:
                label = month_label(bill.bill_date)
                return label, label, bill.bill_date.replace(day=1)
            case _:
                return bill.bill_id, bill.bill_no, None

    def _finish(
        self,
        group_key: GroupKey,
        buckets: Iterable[_Bucket],
        *,
        window: DateWindow | None,
        share_of: Metric,
        order_by: Metric,
        top_n: int | None,
    ) -> RollupResult:
        results: list[tuple[_Bucket, ProfitResult]] = [
            (b, compute_profit(b.revenue, CostBreakdown.from_classified(b.classified)))
            for b in buckets
        ]

        total_revenue = sum((r.revenue for _, r in results), ZERO)
        total_costs = sum((r.costs for _, r in results), CostBreakdown())
        totals = compute_profit(total_revenue, total_costs)

        share_getter = _METRIC_GETTERS[share_of]
        share_total = sum((share_getter(r) for _, r in results), ZERO)

        rows = [
            Rollup(
                key=b.key,
                label=b.label,
                bill_count=len(b.bill_ids),
                transaction_count=len(b.classified),
                result=r,
                percentage=safe_percentage(share_getter(r), share_total),
                cost_type_names=tuple(n for n in b.cost_type_names if n),
                period_start=b.period_start,
            )
            for b, r in results
        ]

        if group_key is GroupKey.MONTH:
            rows.sort(key=lambda row: parse_month_label(row.label))
        else:
            order_getter = _METRIC_GETTERS[order_by]
            rows.sort(key=lambda row: order_getter(row.result), reverse=True)

        if top_n is not None:
            rows = rows[: max(top_n, 0)]

        bill_ids: set[str] = set()
        for b, _ in results:
            bill_ids.update(b.bill_ids)

        logger.debug(
            "rollup_completed",
            extra={
                "group_key": group_key.value,
                "bucket_count": len(results),
                "row_count": len(rows),
                "total_profit": str(totals.profit),
            },
        )

        return RollupResult(
            group_key=group_key,
            rows=tuple(rows),
            totals=totals,
            bill_count=len(bill_ids),
            transaction_count=sum(len(b.classified) for b, _ in results),
            window=window,
        )

