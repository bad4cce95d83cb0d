"""
Module: billing_engines.profit
Responsibility:
    Profit, margin, percentage-share and trend arithmetic over classified
    cost breakdowns, plus tolerant amount coercion and display rounding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - profit = revenue - invoiced costs.  Paid-on-behalf and no-invoice
      amounts appear in total_costs but never change profit.
    - margin is 0 when revenue <= 0; no division by zero, never NaN or
      Infinity.
    - Decimal-only arithmetic.  Floats are converted via their string
      form; None, non-numeric, NaN and infinite inputs become 0.

Failure modes:
    - None.  Every function is total.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from billing_engines.classification import ClassifiedCost, CostCategory
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.profit")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_amount(value: Any) -> Decimal:
    """Coerce a stored amount to Decimal; unusable values become 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, int):
            amount = Decimal(value)
        elif isinstance(value, (float, str)):
            amount = Decimal(str(value).strip())
        else:
            return ZERO
    except InvalidOperation:
        logger.debug("amount_not_numeric", extra={"value": str(value)})
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def round_amount(value: Any, places: int = 2) -> Decimal:
    """Round for display with ROUND_HALF_UP."""
    return to_amount(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def safe_percentage(part: Any, whole: Any) -> Decimal:
    """part / whole * 100, or 0 when whole is 0."""
    denominator = to_amount(whole)
    if denominator == ZERO:
        return ZERO
    return to_amount(part) / denominator * HUNDRED


def compute_margin(profit: Any, revenue: Any) -> Decimal:
    """Profit margin in percent; 0 unless revenue is positive."""
    revenue = to_amount(revenue)
    if revenue <= ZERO:
        return ZERO
    return to_amount(profit) / revenue * HUNDRED


def trend_percentage(current: Any, previous: Any) -> Decimal:
    """Period-over-period change in percent; a zero previous value gives 100."""
    previous = to_amount(previous)
    if previous == ZERO:
        return HUNDRED
    return (to_amount(current) - previous) / previous * HUNDRED


@dataclass(frozen=True)
class CostBreakdown:
    """
    Cost totals per category.

    Guarantees:
        - Immutable; ``add`` and ``+`` return new instances.
    """

    invoiced: Decimal = ZERO
    paid_on_behalf: Decimal = ZERO
    no_invoice: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.invoiced + self.paid_on_behalf + self.no_invoice

    @property
    def pass_through(self) -> Decimal:
        return self.paid_on_behalf + self.no_invoice

    def amount_for(self, category: CostCategory) -> Decimal:
        return getattr(self, category.value)

    def add(self, category: CostCategory, amount: Any) -> CostBreakdown:
        field = category.value
        return replace(self, **{field: getattr(self, field) + to_amount(amount)})

    def __add__(self, other: CostBreakdown) -> CostBreakdown:
        if not isinstance(other, CostBreakdown):
            return NotImplemented
        return CostBreakdown(
            invoiced=self.invoiced + other.invoiced,
            paid_on_behalf=self.paid_on_behalf + other.paid_on_behalf,
            no_invoice=self.no_invoice + other.no_invoice,
        )

    @classmethod
    def from_classified(cls, costs: Iterable[ClassifiedCost]) -> CostBreakdown:
        totals = {category: ZERO for category in CostCategory}
        for item in costs:
            totals[item.category] += to_amount(item.amount)
        return cls(
            invoiced=totals[CostCategory.INVOICED],
            paid_on_behalf=totals[CostCategory.PAID_ON_BEHALF],
            no_invoice=totals[CostCategory.NO_INVOICE],
        )


@dataclass(frozen=True)
class ProfitResult:
    """Revenue, cost breakdown, profit and margin for one aggregation unit."""

    revenue: Decimal
    costs: CostBreakdown
    profit: Decimal
    margin: Decimal

    @property
    def total_costs(self) -> Decimal:
        return self.costs.total

    @classmethod
    def zero(cls) -> ProfitResult:
        return cls(revenue=ZERO, costs=CostBreakdown(), profit=ZERO, margin=ZERO)


def compute_profit(revenue: Any, costs: CostBreakdown) -> ProfitResult:
    """Profit and margin for a revenue figure and its classified costs."""
    revenue = to_amount(revenue)
    profit = revenue - costs.invoiced
    return ProfitResult(
        revenue=revenue,
        costs=costs,
        profit=profit,
        margin=compute_margin(profit, revenue),
    )


def line_profit(allocated_revenue: Any, cost_amount: Any, category: CostCategory) -> Decimal:
    """
    Profit shown on a single cost line.

    Invoiced lines subtract their amount from the allocated revenue;
    pass-through lines show the allocated revenue unchanged.
    """
    allocated = to_amount(allocated_revenue)
    if category is CostCategory.INVOICED:
        return allocated - to_amount(cost_amount)
    return allocated
