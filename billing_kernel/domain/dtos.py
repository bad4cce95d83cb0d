"""
Read-side DTOs consumed by the calculation engines.

Responsibility:
    Immutable snapshots of bills, cost lines, revenue lines and prices.
    Selectors build them from ORM rows; the fallback dataset builds them
    directly.  Engines never see ORM objects.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - All DTOs are frozen dataclasses; collections are tuples.
    - Identifiers are strings so live rows and fallback rows mix freely.

Failure modes:
    - None.  Amounts are not validated here; the profit engine coerces
      non-numeric amounts to zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class AttributeValue:
    """A named attribute set on a cost line (e.g. "Trả hộ" = "true")."""

    name: str
    value: str


@dataclass(frozen=True)
class CostRecord:
    """One cost line with the names of its cost type and supplier."""

    cost_id: str
    bill_id: str
    cost_type_id: str
    cost_type_name: str
    supplier_id: str
    supplier_name: str
    amount: Decimal | Any
    cost_date: date
    attributes: tuple[AttributeValue, ...] = ()
    legacy_tag: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RevenueRecord:
    revenue_id: str
    bill_id: str
    amount: Decimal | Any
    revenue_date: date


@dataclass(frozen=True)
class BillRecord:
    """
    A bill with its cost and revenue lines.

    Contract:
        costs and revenues hold every line of the bill, in a stable order.
    """

    bill_id: str
    bill_no: str
    bill_date: date
    customer_id: str
    customer_name: str
    service_id: str
    service_name: str
    status: str
    costs: tuple[CostRecord, ...] = ()
    revenues: tuple[RevenueRecord, ...] = ()
    invoice_no: str | None = None
    import_export_type: str | None = None
    goods_type: str | None = None
    package_count: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CostPriceRecord:
    customer_id: str
    service_id: str
    cost_type_id: str
    price: Decimal


@dataclass(frozen=True)
class PriceRecord:
    customer_id: str
    service_id: str
    price: Decimal


@dataclass(frozen=True)
class ReferenceItem:
    """Id/name pair for customers, suppliers, services and cost types."""

    item_id: str
    name: str
