"""
Pytest fixtures for the billing test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- ``captured_logs`` for asserting on JSON log records
- In-memory SQLite engine, schema and sessions (StaticPool, shared across
  threads so the resilient executor's workers see the same database)
- A deterministic clock
- Builders for persisted ORM rows (DTO builders live in tests/builders.py)

Environment Variables:
- BILLING_TEST_DATABASE_URL: run the database tests against another URL
  (e.g. PostgreSQL).  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.models import (
    Bill,
    Cost,
    CostAttributeValue,
    CostPrice,
    CostType,
    CostTypeAttribute,
    Customer,
    Price,
    Revenue,
    Service,
    Supplier,
)
from tests.builders import FIXED_NOW, TODAY

DEFAULT_TEST_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, report_service):
            report_service.dashboard()
            logs = captured_logs()
            assert any(r["message"] == "report_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    """Clock fixed at 2025-01-15 12:00 UTC."""
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("BILLING_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


@pytest.fixture
def engine():
    """Fresh schema per test; in-memory SQLite unless overridden."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    drop_tables()
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    s = get_session()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Persisted data
# =============================================================================


@pytest.fixture
def reference_data(session):
    """
    Customers, suppliers, services and cost types with classification
    attributes, committed.

    Returns a dict of the ORM rows keyed by short name.
    """
    rows = {
        "abc": Customer(name="Công ty ABC"),
        "xyz": Customer(name="Công ty XYZ"),
        "idle": Customer(name="Công ty Không Hóa Đơn"),
        "sup1": Supplier(name="Nhà cung cấp 1"),
        "sup2": Supplier(name="Nhà cung cấp 2"),
        "container": Service(name="Vận chuyển container"),
        "lcl": Service(name="Vận chuyển hàng lẻ"),
        "transport": CostType(name="Chi phí vận chuyển"),
        "delivery": CostType(name="Chi phí giao hàng"),
    }
    for key in ("transport", "delivery"):
        rows[key].attributes = [
            CostTypeAttribute(name="Trả hộ"),
            CostTypeAttribute(name="Ko hóa đơn"),
        ]
    session.add_all(rows.values())
    session.commit()
    return rows


@pytest.fixture
def persist_bill(session, reference_data):
    """
    Persist a bill with cost and revenue lines.

    Usage::

        bill = persist_bill(
            bill_no="BILL001",
            costs=[("transport", "sup1", "5000000", None),
                   ("delivery", "sup2", "2000000", "Trả hộ")],
            revenue="7000000",
        )
    """

    def _persist(
        *,
        bill_no: str = "BILL001",
        bill_date: date = TODAY,
        customer: str = "abc",
        service: str = "container",
        status: str = "Completed",
        costs: list[tuple[str, str, str, str | None]] = (),
        revenue: str | None = None,
        legacy_tags: dict[int, str] | None = None,
    ) -> Bill:
        bill = Bill(
            bill_no=bill_no,
            bill_date=bill_date,
            customer_id=reference_data[customer].id,
            service_id=reference_data[service].id,
            status=status,
        )
        for index, (cost_type_key, supplier_key, amount, flag) in enumerate(costs):
            cost_type = reference_data[cost_type_key]
            line = Cost(
                cost_type_id=cost_type.id,
                supplier_id=reference_data[supplier_key].id,
                amount=Decimal(amount),
                cost_date=bill_date,
                tt_hd=(legacy_tags or {}).get(index, "Hóa đơn"),
            )
            if flag:
                line.attribute_values = [
                    CostAttributeValue(attribute=cost_type.attribute_named(flag), value="true")
                ]
            bill.costs.append(line)
        if revenue is not None:
            bill.revenues.append(Revenue(amount=Decimal(revenue), revenue_date=bill_date))
        session.add(bill)
        session.commit()
        return bill

    return _persist


@pytest.fixture
def persist_prices(session, reference_data):
    """Persist the standing prices used by the end-to-end profit example."""

    def _persist() -> None:
        session.add_all(
            [
                CostPrice(
                    customer_id=reference_data["abc"].id,
                    service_id=reference_data["container"].id,
                    cost_type_id=reference_data["transport"].id,
                    price=Decimal("6000000"),
                ),
                CostPrice(
                    customer_id=reference_data["abc"].id,
                    service_id=reference_data["container"].id,
                    cost_type_id=reference_data["delivery"].id,
                    price=Decimal("2500000"),
                ),
                Price(
                    customer_id=reference_data["abc"].id,
                    service_id=reference_data["container"].id,
                    price=Decimal("7000000"),
                ),
            ]
        )
        session.commit()

    return _persist
