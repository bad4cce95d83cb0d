"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads the YAML configuration document and parses it into the frozen
dataclasses of ``billing_config.schema``.  Services obtain configuration
through ``billing_config.get_active_config()``, never from here.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Missing sections and keys fall back to the schema defaults; present
  keys with unusable values raise ``ConfigurationError`` naming the key.
* ``compute_checksum`` is deterministic for equal documents.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    DEFAULT_STRATEGIES,
    REPORT_TYPES,
    BillingConfig,
    ClassificationSettings,
    DatabaseSettings,
    ReportingSettings,
    ResilienceSettings,
)
from billing_engines.periods import DEFAULT_TIMEFRAME_DAYS, Timeframe
from billing_engines.revenue import RevenueStrategy
from billing_kernel.exceptions import ConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a configuration document."""
    canonical = json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, "must be a mapping")
    return value


def _names(section: dict[str, Any], key: str, prefix: str, default: tuple[str, ...]) -> tuple[str, ...]:
    if key not in section:
        return default
    raw = section[key]
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw or not all(isinstance(v, str) and v.strip() for v in raw):
        raise ConfigurationError(f"{prefix}.{key}", "must be a non-empty list of names")
    return tuple(raw)


def _positive_int(section: dict[str, Any], key: str, prefix: str, default: int) -> int:
    if key not in section:
        return default
    value = section[key]
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{prefix}.{key}", f"must be a positive integer, got {value!r}")
    return value


def parse_classification(data: dict[str, Any]) -> ClassificationSettings:
    defaults = ClassificationSettings()
    return ClassificationSettings(
        paid_on_behalf_names=_names(
            data, "paid_on_behalf_names", "classification", defaults.paid_on_behalf_names
        ),
        no_invoice_names=_names(
            data, "no_invoice_names", "classification", defaults.no_invoice_names
        ),
        true_values=_names(data, "true_values", "classification", defaults.true_values),
    )


def parse_resilience(data: dict[str, Any]) -> ResilienceSettings:
    defaults = ResilienceSettings()
    enabled = data.get("enabled", defaults.enabled)
    if not isinstance(enabled, bool):
        raise ConfigurationError("resilience.enabled", "must be true or false")
    return ResilienceSettings(
        enabled=enabled,
        timeout_ms=_positive_int(data, "timeout_ms", "resilience", defaults.timeout_ms),
    )


def parse_reporting(data: dict[str, Any]) -> ReportingSettings:
    defaults = ReportingSettings()

    try:
        default_timeframe = Timeframe(data.get("default_timeframe", defaults.default_timeframe.value))
    except ValueError:
        raise ConfigurationError(
            "reporting.default_timeframe", f"unknown timeframe {data['default_timeframe']!r}"
        ) from None
    if default_timeframe is Timeframe.CUSTOM:
        raise ConfigurationError("reporting.default_timeframe", "custom cannot be the default")

    days_section = data.get("timeframe_days") or {}
    if not isinstance(days_section, dict):
        raise ConfigurationError("reporting.timeframe_days", "must be a mapping")
    timeframe_days = dict(DEFAULT_TIMEFRAME_DAYS)
    for name in days_section:
        try:
            timeframe = Timeframe(name)
        except ValueError:
            raise ConfigurationError(
                f"reporting.timeframe_days.{name}", "unknown timeframe"
            ) from None
        if timeframe is Timeframe.CUSTOM:
            raise ConfigurationError(
                "reporting.timeframe_days.custom", "custom ranges have no fixed length"
            )
        timeframe_days[timeframe] = _positive_int(
            days_section, name, "reporting.timeframe_days", timeframe_days[timeframe]
        )

    strategy_section = data.get("strategies") or {}
    if not isinstance(strategy_section, dict):
        raise ConfigurationError("reporting.strategies", "must be a mapping")
    strategies = dict(DEFAULT_STRATEGIES)
    for report_type, value in strategy_section.items():
        if report_type not in REPORT_TYPES:
            raise ConfigurationError(
                f"reporting.strategies.{report_type}",
                f"unknown report type; expected one of {', '.join(REPORT_TYPES)}",
            )
        try:
            strategies[report_type] = RevenueStrategy(value)
        except ValueError:
            raise ConfigurationError(
                f"reporting.strategies.{report_type}", f"unknown strategy {value!r}"
            ) from None

    currency = data.get("currency", defaults.currency)
    if not isinstance(currency, str) or len(currency) != 3:
        raise ConfigurationError("reporting.currency", "must be a 3-letter currency code")

    return ReportingSettings(
        currency=currency.upper(),
        default_timeframe=default_timeframe,
        timeframe_days=timeframe_days,
        top_n=_positive_int(data, "top_n", "reporting", defaults.top_n),
        trend_window_days=_positive_int(
            data, "trend_window_days", "reporting", defaults.trend_window_days
        ),
        detail_default_days=_positive_int(
            data, "detail_default_days", "reporting", defaults.detail_default_days
        ),
        strategies=strategies,
    )


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    url = data.get("url")
    if url is not None and not isinstance(url, str):
        raise ConfigurationError("database.url", "must be a string")
    return DatabaseSettings(url=url or None)


def parse_config(data: dict[str, Any], source: str = "<dict>") -> BillingConfig:
    """Parse a whole configuration document."""
    return BillingConfig(
        classification=parse_classification(_section(data, "classification")),
        resilience=parse_resilience(_section(data, "resilience")),
        reporting=parse_reporting(_section(data, "reporting")),
        database=parse_database(_section(data, "database")),
        checksum=compute_checksum(data),
        source=source,
    )
