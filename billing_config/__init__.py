"""
billing_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services and scripts never read the YAML
    file or the ``BILLING_*`` environment variables themselves.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and ``billing_engines``
    and below ``billing_services``.  Neither the kernel nor the engines
    import from this package.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Every returned config has passed value validation.

Failure modes:
    - ``FileNotFoundError`` -- configured file does not exist.
    - ``ConfigurationError`` -- invalid values.

Audit relevance:
    Every successful call emits a ``BILLING_CONFIG_TRACE`` record with the
    source path and checksum, tying every report to the configuration
    that produced it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path

from billing_config.loader import load_yaml_file, parse_config
from billing_config.schema import (
    BillingConfig,
    ClassificationSettings,
    DatabaseSettings,
    ReportingSettings,
    ResilienceSettings,
)

_logger = logging.getLogger("billing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "BILLING_CONFIG"
DATABASE_URL_ENV = "BILLING_DATABASE_URL"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> BillingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to ``$BILLING_CONFIG`` and then
            the packaged ``defaults.yaml``.
        environ: Environment mapping (``os.environ`` when None).

    Returns:
        Validated ``BillingConfig``.  ``$BILLING_DATABASE_URL`` overrides
        ``database.url`` when set.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    config = parse_config(load_yaml_file(config_path), source=str(config_path))

    database_url = env.get(DATABASE_URL_ENV)
    if database_url:
        config = replace(config, database=DatabaseSettings(url=database_url))

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "timeout_ms": config.resilience.timeout_ms,
            "resilience_enabled": config.resilience.enabled,
            "database_configured": config.database.url is not None,
            "strategies": {k: v.value for k, v in config.reporting.strategies.items()},
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "ClassificationSettings",
    "DatabaseSettings",
    "ReportingSettings",
    "ResilienceSettings",
    "get_active_config",
]
