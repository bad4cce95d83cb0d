"""
Module: billing_engines
Responsibility:
    Package entrypoint re-exporting the pure calculation engines: cost
    classification, revenue resolution, profit arithmetic, dimensional
    rollups, report periods and the bill-detail builder.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel (domain DTOs, exceptions, logging) and
    sibling engine modules.  MUST NOT import billing_services.

Invariants enforced:
    - Purity: engines never read the clock; ``today`` is passed in.
    - Decimal-only arithmetic.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Batch entry points are wrapped by ``@traced_engine`` and emit
    BILLING_ENGINE_TRACE records with an input fingerprint and duration.

Usage:
    from billing_engines import Aggregator, GroupKey, RevenueStrategy
"""

from billing_engines.aggregation import (
    Aggregator,
    BillTotals,
    GroupKey,
    Metric,
    Rollup,
    RollupResult,
    month_label,
    parse_month_label,
    sort_periods,
)
from billing_engines.classification import (
    ClassificationRules,
    ClassifiedCost,
    CostCategory,
    CostClassifier,
    attribute_flag,
    legacy_category,
)
from billing_engines.detail import (
    BillDetail,
    BillDetailBuilder,
    CostTypeSummary,
    DetailRow,
    DetailRowKind,
)
from billing_engines.periods import (
    DEFAULT_TIMEFRAME_DAYS,
    DateWindow,
    Timeframe,
    parse_date,
    parse_timeframe,
    resolve_window,
)
from billing_engines.profit import (
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
from billing_engines.revenue import (
    EvenSplit,
    LineAllocation,
    PriceBook,
    PricedLine,
    RevenueResolver,
    RevenueStrategy,
    allocate_evenly,
)

__all__ = [
    "Aggregator",
    "BillDetail",
    "BillDetailBuilder",
    "BillTotals",
    "ClassificationRules",
    "ClassifiedCost",
    "CostBreakdown",
    "CostCategory",
    "CostClassifier",
    "CostTypeSummary",
    "DEFAULT_TIMEFRAME_DAYS",
    "DateWindow",
    "DetailRow",
    "DetailRowKind",
    "EvenSplit",
    "GroupKey",
    "LineAllocation",
    "Metric",
    "PriceBook",
    "PricedLine",
    "ProfitResult",
    "RevenueResolver",
    "RevenueStrategy",
    "Rollup",
    "RollupResult",
    "Timeframe",
    "allocate_evenly",
    "attribute_flag",
    "compute_margin",
    "compute_profit",
    "legacy_category",
    "line_profit",
    "month_label",
    "parse_date",
    "parse_month_label",
    "parse_timeframe",
    "resolve_window",
    "round_amount",
    "safe_percentage",
    "sort_periods",
    "to_amount",
    "trend_percentage",
]
