"""Builders for the read-side DTOs used across the engine and service tests."""

from datetime import UTC, date, datetime
from decimal import Decimal
from itertools import count

from billing_kernel.domain.dtos import (
    AttributeValue,
    BillRecord,
    CostPriceRecord,
    CostRecord,
    PriceRecord,
    RevenueRecord,
)

TODAY = date(2025, 1, 15)
FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)

_ids = count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


def _amount(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def make_cost(
    amount,
    *,
    bill_id: str = "bill-1",
    cost_type_id: str = "ct-1",
    cost_type_name: str = "Chi phí vận chuyển",
    supplier_id: str = "sup-1",
    supplier_name: str = "Nhà cung cấp 1",
    cost_date: date = TODAY,
    attributes: dict[str, str] | None = None,
    legacy_tag: str | None = None,
) -> CostRecord:
    """CostRecord with optional attribute-values given as {name: value}."""
    return CostRecord(
        cost_id=_next_id("cost"),
        bill_id=bill_id,
        cost_type_id=cost_type_id,
        cost_type_name=cost_type_name,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        amount=_amount(amount),
        cost_date=cost_date,
        attributes=tuple(AttributeValue(n, v) for n, v in (attributes or {}).items()),
        legacy_tag=legacy_tag,
    )


def paid_on_behalf(amount, **kwargs) -> CostRecord:
    return make_cost(amount, attributes={"Trả hộ": "true"}, **kwargs)


def no_invoice(amount, **kwargs) -> CostRecord:
    return make_cost(amount, attributes={"Ko hóa đơn": "true"}, **kwargs)


def make_bill(
    *,
    bill_id: str | None = None,
    bill_no: str = "BILL001",
    bill_date: date = TODAY,
    customer_id: str = "cus-1",
    customer_name: str = "Công ty ABC",
    service_id: str = "svc-1",
    service_name: str = "Vận chuyển container",
    status: str = "Completed",
    costs: tuple[CostRecord, ...] = (),
    revenue=None,
) -> BillRecord:
    """BillRecord; ``revenue`` becomes a single revenue line when given."""
    bill_id = bill_id or _next_id("bill")
    revenues = ()
    if revenue is not None:
        revenues = (
            RevenueRecord(
                revenue_id=_next_id("rev"),
                bill_id=bill_id,
                amount=_amount(revenue),
                revenue_date=bill_date,
            ),
        )
    return BillRecord(
        bill_id=bill_id,
        bill_no=bill_no,
        bill_date=bill_date,
        customer_id=customer_id,
        customer_name=customer_name,
        service_id=service_id,
        service_name=service_name,
        status=status,
        costs=tuple(costs),
        revenues=revenues,
    )


def cost_price(price, *, customer_id="cus-1", service_id="svc-1", cost_type_id="ct-1"):
    return CostPriceRecord(customer_id, service_id, cost_type_id, _amount(price))


def flat_price(price, *, customer_id="cus-1", service_id="svc-1"):
    return PriceRecord(customer_id, service_id, _amount(price))
