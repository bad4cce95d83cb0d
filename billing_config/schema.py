"""
Configuration schema (``billing_config.schema``).

Frozen dataclasses describing the runtime configuration.  Built by
``billing_config.loader`` from YAML; consumed by services.  Bridges to the
engine layer (``to_rules``, ``strategy_for``) live here so engines never
import configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from billing_engines.classification import (
    DEFAULT_NO_INVOICE_NAMES,
    DEFAULT_PAID_ON_BEHALF_NAMES,
    DEFAULT_TRUE_VALUES,
    ClassificationRules,
)
from billing_engines.periods import DEFAULT_TIMEFRAME_DAYS, Timeframe
from billing_engines.revenue import RevenueStrategy

REPORT_TYPES = ("bill", "bill_list", "dashboard", "customer", "profit_loss")

DEFAULT_STRATEGIES: dict[str, RevenueStrategy] = {
    "bill": RevenueStrategy.PRICED,
    "bill_list": RevenueStrategy.PRICED,
    "dashboard": RevenueStrategy.DIRECT,
    "customer": RevenueStrategy.DIRECT,
    "profit_loss": RevenueStrategy.DIRECT,
}


@dataclass(frozen=True)
class ClassificationSettings:
    paid_on_behalf_names: tuple[str, ...] = DEFAULT_PAID_ON_BEHALF_NAMES
    no_invoice_names: tuple[str, ...] = DEFAULT_NO_INVOICE_NAMES
    true_values: tuple[str, ...] = DEFAULT_TRUE_VALUES

    def to_rules(self) -> ClassificationRules:
        return ClassificationRules(
            paid_on_behalf_names=self.paid_on_behalf_names,
            no_invoice_names=self.no_invoice_names,
            true_values=self.true_values,
        )


@dataclass(frozen=True)
class ResilienceSettings:
    """Live-query race settings.  ``enabled=False`` skips the fallback race."""

    enabled: bool = True
    timeout_ms: int = 3000


@dataclass(frozen=True)
class ReportingSettings:
    currency: str = "VND"
    default_timeframe: Timeframe = Timeframe.MONTH
    timeframe_days: dict[Timeframe, int] = field(
        default_factory=lambda: dict(DEFAULT_TIMEFRAME_DAYS)
    )
    top_n: int = 5
    trend_window_days: int = 30
    detail_default_days: int = 90
    strategies: dict[str, RevenueStrategy] = field(
        default_factory=lambda: dict(DEFAULT_STRATEGIES)
    )

    def strategy_for(self, report_type: str) -> RevenueStrategy:
        """Revenue strategy configured for a report type."""
        return self.strategies.get(report_type, DEFAULT_STRATEGIES[report_type])


@dataclass(frozen=True)
class DatabaseSettings:
    url: str | None = None


@dataclass(frozen=True)
class BillingConfig:
    """
    Complete runtime configuration.

    Guarantees:
        - ``checksum`` is the SHA-256 of the canonical source document.
    """

    classification: ClassificationSettings = field(default_factory=ClassificationSettings)
    resilience: ResilienceSettings = field(default_factory=ResilienceSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""
    source: str = "<defaults>"

    @classmethod
    def with_defaults(cls) -> BillingConfig:
        return cls()
