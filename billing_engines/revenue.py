"""
Module: billing_engines.revenue
Responsibility:
    Determine a bill's revenue under one explicit strategy:

    DIRECT      sum of the bill's recorded revenue lines.
    PRICED      sum, over the bill's cost lines, of the standing cost price
                for (customer, service, cost type); unmatched lines add 0.
    EVEN_SPLIT  DIRECT revenue divided evenly across the bill's cost lines,
                for per-line reporting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Prices arrive as DTOs in
    a PriceBook built by the caller.

Invariants enforced:
    - One strategy per call; strategies are never blended.
    - EVEN_SPLIT conserves the bill total: line shares are rounded to 0.01
      (ROUND_HALF_UP) and the remainder is assigned to the last line.  A
      bill with no cost lines keeps its whole revenue as ``unallocated``.
    - At most one price per key: the first record wins, later duplicates
      are logged and ignored.

Failure modes:
    - ValueError for a strategy value that is not a RevenueStrategy.

Usage:
    book = PriceBook(cost_prices=pricing.cost_prices())
    resolver = RevenueResolver(book)
    revenue = resolver.resolve(bill, RevenueStrategy.PRICED)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from billing_engines.profit import ZERO, to_amount
from billing_kernel.domain.dtos import (
    BillRecord,
    CostPriceRecord,
    CostRecord,
    PriceRecord,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.revenue")

CENT = Decimal("0.01")


class RevenueStrategy(str, Enum):
    """How revenue is attributed to a bill."""

    DIRECT = "direct"
    PRICED = "priced"
    EVEN_SPLIT = "even_split"


class PriceBook:
    """
    Lookup of standing prices.

    Contract:
        cost_price is keyed by (customer_id, service_id, cost_type_id),
        flat_price by (customer_id, service_id).
    Guarantees:
        - The first record per key wins; duplicates log a warning.
    """

    def __init__(
        self,
        cost_prices: Iterable[CostPriceRecord] = (),
        prices: Iterable[PriceRecord] = (),
    ):
        self._cost_prices: dict[tuple[str, str, str], Decimal] = {}
        self._prices: dict[tuple[str, str], Decimal] = {}

        for record in cost_prices:
            key = (record.customer_id, record.service_id, record.cost_type_id)
            if key in self._cost_prices:
                logger.warning(
                    "duplicate_cost_price_ignored",
                    extra={
                        "customer_id": record.customer_id,
                        "service_id": record.service_id,
                        "cost_type_id": record.cost_type_id,
                    },
                )
                continue
            self._cost_prices[key] = to_amount(record.price)

        for record in prices:
            key2 = (record.customer_id, record.service_id)
            if key2 in self._prices:
                logger.warning(
                    "duplicate_price_ignored",
                    extra={
                        "customer_id": record.customer_id,
                        "service_id": record.service_id,
                    },
                )
                continue
            self._prices[key2] = to_amount(record.price)

    def cost_price(
        self, customer_id: str, service_id: str, cost_type_id: str
    ) -> Decimal | None:
        return self._cost_prices.get((customer_id, service_id, cost_type_id))

    def flat_price(self, customer_id: str, service_id: str) -> Decimal | None:
        return self._prices.get((customer_id, service_id))

    def __len__(self) -> int:
        return len(self._cost_prices) + len(self._prices)


@dataclass(frozen=True)
class PricedLine:
    """Cost price matched to one cost line, or None when no price exists."""

    cost: CostRecord
    price: Decimal | None

    @property
    def matched(self) -> bool:
        return self.price is not None

    @property
    def amount(self) -> Decimal:
        return self.price if self.price is not None else ZERO


@dataclass(frozen=True)
class LineAllocation:
    """Share of bill revenue assigned to one cost line."""

    cost: CostRecord
    allocated: Decimal


@dataclass(frozen=True)
class EvenSplit:
    """
    DIRECT revenue spread across a bill's cost lines.

    Guarantees:
        - sum(line.allocated) + unallocated == revenue.
        - unallocated is non-zero only when the bill has no cost lines.
    """

    revenue: Decimal
    lines: tuple[LineAllocation, ...]
    unallocated: Decimal

    @property
    def per_line(self) -> Decimal:
        """Nominal (pre-remainder) share per line."""
        if not self.lines:
            return ZERO
        return self.lines[0].allocated


def allocate_evenly(total: Decimal, costs: Sequence[CostRecord]) -> EvenSplit:
    """Split ``total`` evenly over ``costs``; the last line absorbs rounding."""
    total = to_amount(total)
    if not costs:
        return EvenSplit(revenue=total, lines=(), unallocated=total)

    count = len(costs)
    share = (total / count).quantize(CENT, rounding=ROUND_HALF_UP)
    last = total - share * (count - 1)
    lines = tuple(
        LineAllocation(cost=cost, allocated=share if i < count - 1 else last)
        for i, cost in enumerate(costs)
    )
    return EvenSplit(revenue=total, lines=lines, unallocated=ZERO)


class RevenueResolver:
    """
    Resolve bill revenue under a RevenueStrategy.

    Contract:
        Pure; revenue depends only on the bill DTO and the PriceBook.
    Non-goals:
        - Does not pick the strategy; callers pass the one configured for
          their report.
    """

    def __init__(self, price_book: PriceBook | None = None):
        self.price_book = price_book or PriceBook()

    def direct(self, bill: BillRecord) -> Decimal:
        return sum((to_amount(r.amount) for r in bill.revenues), ZERO)

    def resolve_priced(self, bill: BillRecord) -> tuple[PricedLine, ...]:
        """Cost price for every cost line of the bill, in line order."""
        return tuple(
            PricedLine(
                cost=cost,
                price=self.price_book.cost_price(
                    bill.customer_id, bill.service_id, cost.cost_type_id
                ),
            )
            for cost in bill.costs
        )

    def priced(self, bill: BillRecord) -> Decimal:
        return sum((line.amount for line in self.resolve_priced(bill)), ZERO)

    def split(self, bill: BillRecord) -> EvenSplit:
        return allocate_evenly(self.direct(bill), bill.costs)

    def list_price(self, bill: BillRecord) -> Decimal | None:
        """Flat service price agreed with the bill's customer, if any."""
        return self.price_book.flat_price(bill.customer_id, bill.service_id)

    def resolve(self, bill: BillRecord, strategy: RevenueStrategy) -> Decimal:
        """
        Bill revenue under ``strategy``.

        EVEN_SPLIT resolves to the conserved bill total, equal to DIRECT.
        """
        match strategy:
            case RevenueStrategy.DIRECT:
                return self.direct(bill)
            case RevenueStrategy.PRICED:
                return self.priced(bill)
            case RevenueStrategy.EVEN_SPLIT:
                return self.split(bill).revenue
            case _:
                raise ValueError(f"Unknown revenue strategy: {strategy!r}")
