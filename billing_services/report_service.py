"""
Billing Report Service (``billing_services.report_service``).

Responsibility
--------------
Orchestrates every billing report -- single bill, bill list, dashboard,
customer, supplier, profit-and-loss and bill detail -- by bridging the
kernel selectors to the pure engines in ``billing_engines``.  This is a
**read-only** service.

Architecture position
---------------------
**Services layer**.  Constructor: ``session_factory`` + ``clock`` +
``config`` + optional ``executor``.  Data loading for each report is one
live query raced against the sample dataset by the
``ResilientQueryExecutor``; all figures are then computed by the same
engines whichever source answered.

Invariants enforced
-------------------
* Request parameters are validated BEFORE the live query starts, so a
  malformed request is a validation error and never a fallback.
* Each live query opens and closes its own session inside the worker
  thread.
* Every report carries ``ReportMetadata`` naming its data source.
* All monetary amounts use ``Decimal``.

Failure modes
-------------
* ``BillNotFoundError``  -> unknown bill id (live or sample data).
* ``InvalidTimeframeError`` / ``InvalidDateRangeError`` /
  ``InvalidFilterError``  -> malformed request.
* ``PersistenceUnavailableError``  -> only when resilience is disabled.

Audit relevance
---------------
``report_started`` and ``report_completed`` records carry the report type,
window, data source and fallback reason.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from billing_config import BillingConfig
from billing_engines.aggregation import Aggregator, GroupKey, Metric, RollupResult
from billing_engines.classification import CostClassifier
from billing_engines.detail import BillDetailBuilder
from billing_engines.periods import DateWindow, parse_date, resolve_window
from billing_engines.profit import trend_percentage
from billing_engines.revenue import PriceBook, RevenueResolver, RevenueStrategy
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import (
    BillRecord,
    CostPriceRecord,
    CostRecord,
    PriceRecord,
    ReferenceItem,
)
from billing_kernel.exceptions import BillNotFoundError, InvalidFilterError
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors import (
    BillSelector,
    PricingSelector,
    ReferenceSelector,
    parse_identifier,
)
from billing_services.fallback import SampleDataset, build_sample_dataset
from billing_services.models import (
    BillDetailReport,
    BillListReport,
    BillReport,
    CustomerReport,
    DashboardSummary,
    DashboardTotals,
    DashboardTrends,
    ProfitLossReport,
    ProfitLossSummary,
    ReportMetadata,
    ReportType,
    SupplierReport,
)
from billing_services.resilient import ResilientQueryExecutor, ResilientResult

logger = get_logger("services.report")


@dataclass(frozen=True)
class _Snapshot:
    """Everything one report reads, from whichever source answered."""

    bills: tuple[BillRecord, ...] = ()
    costs: tuple[CostRecord, ...] = ()
    customers: tuple[ReferenceItem, ...] = ()
    cost_prices: tuple[CostPriceRecord, ...] = ()
    prices: tuple[PriceRecord, ...] = ()

    def price_book(self) -> PriceBook:
        return PriceBook(self.cost_prices, self.prices)


def _pricing(session: Session) -> dict[str, tuple]:
    selector = PricingSelector(session)
    return {"cost_prices": tuple(selector.cost_prices()), "prices": tuple(selector.prices())}


def _sample_pricing(sample: SampleDataset) -> dict[str, tuple]:
    return {"cost_prices": sample.cost_prices, "prices": sample.prices}


class BillingReportService:
    """
    Billing report generation service.

    Contract
    --------
    * Every public method returns a typed report DTO.
    * All methods are read-only.

    Guarantees
    ----------
    * One revenue strategy per report, taken from
      ``config.reporting.strategies`` (bill detail always splits evenly).
    * A slow or failing data source yields a report computed from the
      sample dataset instead of an error.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT write to the database.
    * Does NOT format figures for display; see ``billing_services.export``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        executor: ResilientQueryExecutor | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or BillingConfig.with_defaults()
        resilience = self._config.resilience
        self._executor = executor or ResilientQueryExecutor(
            timeout_ms=resilience.timeout_ms,
            enabled=resilience.enabled,
        )
        self._classifier = CostClassifier(self._config.classification.to_rules())

        logger.info(
            "billing_report_service_initialized",
            extra={
                "currency": self._config.reporting.currency,
                "timeout_ms": resilience.timeout_ms,
                "resilience_enabled": resilience.enabled,
            },
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _aggregator(self, snapshot: _Snapshot) -> Aggregator:
        return Aggregator(self._classifier, RevenueResolver(snapshot.price_book()))

    def _strategy(self, report_type: ReportType) -> RevenueStrategy:
        return self._config.reporting.strategy_for(report_type.value)

    def _resolve_window(
        self,
        timeframe: str | None,
        date_from: date | str | None,
        date_to: date | str | None,
    ):
        reporting = self._config.reporting
        return resolve_window(
            self._clock.today(),
            timeframe,
            date_from,
            date_to,
            timeframe_days=reporting.timeframe_days,
            default_timeframe=reporting.default_timeframe,
        )

    def _load(
        self,
        report_type: ReportType,
        live: Callable[[Session], _Snapshot],
        fallback: Callable[[SampleDataset], _Snapshot],
    ) -> ResilientResult[_Snapshot]:
        """Race ``live`` on a fresh session against ``fallback`` on sample data."""

        def live_query() -> _Snapshot:
            with self._session_factory() as session:
                return live(session)

        def fallback_factory() -> _Snapshot:
            return fallback(build_sample_dataset(self._clock.today()))

        return self._executor.execute(live_query, fallback_factory, label=report_type.value)

    def _build_metadata(
        self,
        report_type: ReportType,
        loaded: ResilientResult,
        strategy: RevenueStrategy | None = None,
        timeframe: str | None = None,
        window: DateWindow | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            currency=self._config.reporting.currency,
            as_of_date=self._clock.today(),
            generated_at=self._clock.now().isoformat(),
            data_source=loaded.source,
            fallback_reason=loaded.reason,
            strategy=strategy,
            timeframe=timeframe,
            period_start=window.start if window else None,
            period_end=window.end if window else None,
        )

    def _log_completed(self, metadata: ReportMetadata, **extra) -> None:
        logger.info(
            "report_completed",
            extra={
                "report_type": metadata.report_type.value,
                "data_source": metadata.data_source.value,
                "fallback_reason": metadata.fallback_reason.value
                if metadata.fallback_reason
                else None,
                "period_start": metadata.period_start,
                "period_end": metadata.period_end,
                **extra,
            },
        )

    # =========================================================================
    # Bills
    # =========================================================================

    def get_bill(self, bill_id: str) -> BillReport:
        """
        One bill with its classified costs and profit.

        Raises:
            BillNotFoundError: no bill with this id in the answering source.
        """
        strategy = self._strategy(ReportType.BILL)
        with LogContext.bind(report=ReportType.BILL.value, bill_id=str(bill_id)):
            logger.info("report_started", extra={"report_type": ReportType.BILL.value})

            def live(session: Session) -> _Snapshot:
                bill = BillSelector(session).get_bill(bill_id)
                if bill is None:
                    return _Snapshot()
                return _Snapshot(bills=(bill,), **_pricing(session))

            def fallback(sample: SampleDataset) -> _Snapshot:
                bill = sample.bill(bill_id)
                return _Snapshot(bills=(bill,) if bill else (), **_sample_pricing(sample))

            loaded = self._load(ReportType.BILL, live, fallback)
            if not loaded.value.bills:
                logger.info("bill_not_found", extra={"data_source": loaded.source.value})
                raise BillNotFoundError(str(bill_id))

            totals = self._aggregator(loaded.value).bill_totals(loaded.value.bills[0], strategy)
            metadata = self._build_metadata(ReportType.BILL, loaded, strategy)
            self._log_completed(metadata, profit=str(totals.profit))
            return BillReport(metadata=metadata, totals=totals)

    def list_bills(
        self,
        *,
        customer_id: str | None = None,
        service_id: str | None = None,
        status: str | None = None,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
        bill_no: str | None = None,
        limit: int | None = None,
    ) -> BillListReport:
        """
        Bills matching all filters, newest first, each with its totals.

        Raises:
            InvalidFilterError: malformed id or non-positive limit.
            InvalidDateRangeError: unparsable dates or from after to.
        """
        if customer_id:
            parse_identifier(customer_id, "customer_id")
        if service_id:
            parse_identifier(service_id, "service_id")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0):
            raise InvalidFilterError("limit", limit, "must be a positive integer")
        start = parse_date(date_from, "from") if date_from else None
        end = parse_date(date_to, "to") if date_to else None
        window = DateWindow(start, end) if start and end else None

        strategy = self._strategy(ReportType.BILL_LIST)
        filters = {
            "customer_id": customer_id,
            "service_id": service_id,
            "status": status,
            "bill_no_contains": bill_no,
        }

        with LogContext.bind(report=ReportType.BILL_LIST.value):
            logger.info(
                "report_started",
                extra={"report_type": ReportType.BILL_LIST.value, "limit": limit, **filters},
            )

            def live(session: Session) -> _Snapshot:
                bills = BillSelector(session).list_bills(
                    date_from=start, date_to=end, limit=limit, **filters
                )
                return _Snapshot(bills=tuple(bills), **_pricing(session))

            def fallback(sample: SampleDataset) -> _Snapshot:
                bills = [
                    b
                    for b in sample.list_bills(**filters)
                    if (start is None or b.bill_date >= start)
                    and (end is None or b.bill_date <= end)
                ]
                if limit is not None:
                    bills = bills[:limit]
                return _Snapshot(bills=tuple(bills), **_sample_pricing(sample))

            loaded = self._load(ReportType.BILL_LIST, live, fallback)
            aggregator = self._aggregator(loaded.value)
            bills = tuple(aggregator.bill_totals(b, strategy) for b in loaded.value.bills)
            metadata = self._build_metadata(
                ReportType.BILL_LIST, loaded, strategy, window=window
            )
            self._log_completed(metadata, bill_count=len(bills))
            return BillListReport(metadata=metadata, bills=bills)

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard(self) -> DashboardSummary:
        """
        Global totals, top customers and services by profit, and trends
        for the trailing window against the window before it.
        """
        reporting = self._config.reporting
        strategy = self._strategy(ReportType.DASHBOARD)
        current = DateWindow.trailing(self._clock.today(), reporting.trend_window_days)
        previous = current.previous()

        with LogContext.bind(report=ReportType.DASHBOARD.value):
            logger.info("report_started", extra={"report_type": ReportType.DASHBOARD.value})

            def live(session: Session) -> _Snapshot:
                bills = BillSelector(session).list_bills()
                return _Snapshot(bills=tuple(bills), **_pricing(session))

            def fallback(sample: SampleDataset) -> _Snapshot:
                return _Snapshot(bills=sample.bills, **_sample_pricing(sample))

            loaded = self._load(ReportType.DASHBOARD, live, fallback)
            aggregator = self._aggregator(loaded.value)
            bills = loaded.value.bills

            by_customer = aggregator.rollup_bills(
                bills, GroupKey.CUSTOMER, strategy, share_of=Metric.PROFIT, top_n=reporting.top_n
            )
            by_service = aggregator.rollup_bills(
                bills, GroupKey.SERVICE, strategy, share_of=Metric.PROFIT, top_n=reporting.top_n
            )
            now = aggregator.rollup_bills(bills, GroupKey.BILL, strategy, window=current)
            before = aggregator.rollup_bills(bills, GroupKey.BILL, strategy, window=previous)

            overall = by_customer.totals
            totals = DashboardTotals(
                bill_count=by_customer.bill_count,
                revenue=overall.revenue,
                costs=overall.costs,
                total_costs=overall.total_costs,
                profit=overall.profit,
                margin=overall.margin,
            )
            trends = DashboardTrends(
                bills=trend_percentage(now.bill_count, before.bill_count),
                revenue=trend_percentage(now.totals.revenue, before.totals.revenue),
                costs=trend_percentage(now.totals.total_costs, before.totals.total_costs),
                profit=trend_percentage(now.totals.profit, before.totals.profit),
                current_window=current,
                previous_window=previous,
            )
            metadata = self._build_metadata(ReportType.DASHBOARD, loaded, strategy)
            self._log_completed(metadata, bill_count=totals.bill_count, profit=str(totals.profit))
            return DashboardSummary(
                metadata=metadata,
                totals=totals,
                top_customers=by_customer.rows,
                top_services=by_service.rows,
                trends=trends,
            )

    # =========================================================================
    # Reports
    # =========================================================================

    def _window_bills(
        self, report_type: ReportType, window: DateWindow, with_customers: bool = False
    ) -> ResilientResult[_Snapshot]:
        def live(session: Session) -> _Snapshot:
            bills = BillSelector(session).list_bills(date_from=window.start, date_to=window.end)
            customers = ReferenceSelector(session).customers() if with_customers else ()
            return _Snapshot(bills=tuple(bills), customers=tuple(customers), **_pricing(session))

        def fallback(sample: SampleDataset) -> _Snapshot:
            return _Snapshot(
                bills=tuple(sample.list_bills(window=window)),
                customers=sample.customers if with_customers else (),
                **_sample_pricing(sample),
            )

        return self._load(report_type, live, fallback)

    def customer_report(
        self,
        timeframe: str | None = None,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
    ) -> CustomerReport:
        """Every customer, including those without bills, ranked by profit."""
        resolved, window = self._resolve_window(timeframe, date_from, date_to)
        strategy = self._strategy(ReportType.CUSTOMER)

        with LogContext.bind(report=ReportType.CUSTOMER.value):
            logger.info(
                "report_started",
                extra={"report_type": ReportType.CUSTOMER.value, "timeframe": resolved.value},
            )
            loaded = self._window_bills(ReportType.CUSTOMER, window, with_customers=True)
            result: RollupResult = self._aggregator(loaded.value).rollup_bills(
                loaded.value.bills,
                GroupKey.CUSTOMER,
                strategy,
                window=window,
                share_of=Metric.PROFIT,
                known_groups=loaded.value.customers,
            )
            metadata = self._build_metadata(
                ReportType.CUSTOMER, loaded, strategy, resolved.value, window
            )
            self._log_completed(metadata, row_count=len(result.rows))
            return CustomerReport(
                metadata=metadata,
                rows=result.rows,
                totals=result.totals,
                bill_count=result.bill_count,
            )

    def supplier_report(
        self,
        timeframe: str | None = None,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
        cost_type_id: str | None = None,
    ) -> SupplierReport:
        """Suppliers with at least one cost line in the window, ranked by total cost."""
        resolved, window = self._resolve_window(timeframe, date_from, date_to)
        if cost_type_id:
            parse_identifier(cost_type_id, "cost_type_id")

        with LogContext.bind(report=ReportType.SUPPLIER.value):
            logger.info(
                "report_started",
                extra={
                    "report_type": ReportType.SUPPLIER.value,
                    "timeframe": resolved.value,
                    "cost_type_id": cost_type_id,
                },
            )

            def live(session: Session) -> _Snapshot:
                costs = BillSelector(session).costs_in_window(
                    window.start, window.end, cost_type_id=cost_type_id
                )
                return _Snapshot(costs=tuple(costs))

            def fallback(sample: SampleDataset) -> _Snapshot:
                return _Snapshot(costs=tuple(sample.costs(window, cost_type_id)))

            loaded = self._load(ReportType.SUPPLIER, live, fallback)
            result = Aggregator(self._classifier).rollup_costs(
                loaded.value.costs,
                GroupKey.SUPPLIER,
                window=window,
                cost_type_id=cost_type_id,
            )
            metadata = self._build_metadata(
                ReportType.SUPPLIER, loaded, timeframe=resolved.value, window=window
            )
            self._log_completed(metadata, row_count=len(result.rows))
            return SupplierReport(
                metadata=metadata,
                rows=result.rows,
                totals=result.totals.costs,
                transaction_count=result.transaction_count,
                cost_type_id=cost_type_id,
            )

    def profit_loss_report(
        self,
        timeframe: str | None = None,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
    ) -> ProfitLossReport:
        """Summary totals plus one row per calendar month, oldest first."""
        resolved, window = self._resolve_window(timeframe, date_from, date_to)
        strategy = self._strategy(ReportType.PROFIT_LOSS)

        with LogContext.bind(report=ReportType.PROFIT_LOSS.value):
            logger.info(
                "report_started",
                extra={"report_type": ReportType.PROFIT_LOSS.value, "timeframe": resolved.value},
            )
            loaded = self._window_bills(ReportType.PROFIT_LOSS, window)
            result = self._aggregator(loaded.value).rollup_bills(
                loaded.value.bills,
                GroupKey.MONTH,
                strategy,
                window=window,
                share_of=Metric.PROFIT,
            )
            totals = result.totals
            summary = ProfitLossSummary(
                total_revenue=totals.revenue,
                costs=totals.costs,
                total_costs=totals.total_costs,
                net_profit=totals.profit,
                profit_margin=totals.margin,
                bill_count=result.bill_count,
            )
            metadata = self._build_metadata(
                ReportType.PROFIT_LOSS, loaded, strategy, resolved.value, window
            )
            self._log_completed(metadata, period_count=len(result.rows))
            return ProfitLossReport(metadata=metadata, summary=summary, periods=result.rows)

    def bill_detail_report(
        self,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
    ) -> BillDetailReport:
        """
        Per-cost-line detail with bill totals, grand total and cost-type
        summary.  Without dates, covers the trailing ``detail_default_days``.
        """
        if date_from or date_to:
            resolved, window = self._resolve_window(None, date_from, date_to)
            timeframe = resolved.value
        else:
            window = DateWindow.trailing(
                self._clock.today(), self._config.reporting.detail_default_days
            )
            timeframe = None

        with LogContext.bind(report=ReportType.BILL_DETAIL.value):
            logger.info("report_started", extra={"report_type": ReportType.BILL_DETAIL.value})
            loaded = self._window_bills(ReportType.BILL_DETAIL, window)
            builder = BillDetailBuilder(self._classifier, RevenueResolver(loaded.value.price_book()))
            detail = builder.build(loaded.value.bills, window=window)
            metadata = self._build_metadata(
                ReportType.BILL_DETAIL, loaded, RevenueStrategy.EVEN_SPLIT, timeframe, window
            )
            self._log_completed(metadata, row_count=len(detail.rows))
            return BillDetailReport(metadata=metadata, detail=detail)

    def close(self) -> None:
        self._executor.shutdown()
