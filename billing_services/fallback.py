"""
Static sample dataset served when the live database is slow or down.

Responsibility:
    Provide a small, fixed set of customers, suppliers, services, cost
    types, bills, cost lines, revenue lines and prices.  Reports computed
    from it go through the same engines as live data, so degraded figures
    stay internally consistent.

Invariants enforced:
    - The dataset is rebuilt per call from constants; nothing mutable is
      shared between requests.
    - Bill and cost dates are ``today`` so the sample falls inside every
      preset report window.
    - Filtering mirrors BillSelector.list_bills semantics.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from billing_engines.periods import DateWindow
from billing_kernel.domain.dtos import (
    AttributeValue,
    BillRecord,
    CostPriceRecord,
    CostRecord,
    PriceRecord,
    ReferenceItem,
    RevenueRecord,
)
from billing_kernel.models.bill import BillStatus, GoodsType, ImportExportType
from billing_kernel.selectors.bill_selector import ALL_STATUSES

CUSTOMERS = (
    ReferenceItem("sample-customer-1", "Công ty ABC"),
    ReferenceItem("sample-customer-2", "Công ty XYZ"),
)
SUPPLIERS = (
    ReferenceItem("sample-supplier-1", "Nhà cung cấp 1"),
    ReferenceItem("sample-supplier-2", "Nhà cung cấp 2"),
)
SERVICES = (
    ReferenceItem("sample-service-1", "Vận chuyển container"),
    ReferenceItem("sample-service-2", "Vận chuyển hàng lẻ"),
)
COST_TYPES = (
    ReferenceItem("sample-cost-type-1", "Chi phí vận chuyển"),
    ReferenceItem("sample-cost-type-2", "Chi phí giao hàng"),
)


@dataclass(frozen=True)
class SampleDataset:
    customers: tuple[ReferenceItem, ...]
    suppliers: tuple[ReferenceItem, ...]
    services: tuple[ReferenceItem, ...]
    cost_types: tuple[ReferenceItem, ...]
    bills: tuple[BillRecord, ...]
    cost_prices: tuple[CostPriceRecord, ...]
    prices: tuple[PriceRecord, ...]

    def bill(self, bill_id: str) -> BillRecord | None:
        for bill in self.bills:
            if bill.bill_id == str(bill_id):
                return bill
        return None

    def costs(
        self,
        window: DateWindow | None = None,
        cost_type_id: str | None = None,
    ) -> list[CostRecord]:
        return [
            cost
            for bill in self.bills
            for cost in bill.costs
            if (window is None or window.contains(cost.cost_date))
            and (cost_type_id is None or cost.cost_type_id == cost_type_id)
        ]

    def list_bills(
        self,
        *,
        customer_id: str | None = None,
        service_id: str | None = None,
        status: str | None = None,
        window: DateWindow | None = None,
        bill_no_contains: str | None = None,
        limit: int | None = None,
    ) -> list[BillRecord]:
        needle = bill_no_contains.casefold() if bill_no_contains else None
        bills = [
            b
            for b in self.bills
            if (not customer_id or b.customer_id == customer_id)
            and (not service_id or b.service_id == service_id)
            and (not status or status == ALL_STATUSES or b.status == status)
            and (window is None or window.contains(b.bill_date))
            and (needle is None or needle in b.bill_no.casefold())
        ]
        bills.sort(key=lambda b: (b.bill_date, b.bill_no), reverse=True)
        return bills[:limit] if limit is not None else bills


def build_sample_dataset(today: date) -> SampleDataset:
    """Sample data dated ``today``."""
    customer_1, customer_2 = CUSTOMERS
    supplier_1, supplier_2 = SUPPLIERS
    service_1, service_2 = SERVICES
    transport, delivery = COST_TYPES

    bill_1 = BillRecord(
        bill_id="sample-bill-1",
        bill_no="BILL001",
        bill_date=today,
        customer_id=customer_1.item_id,
        customer_name=customer_1.name,
        service_id=service_1.item_id,
        service_name=service_1.name,
        status=BillStatus.COMPLETED.value,
        import_export_type=ImportExportType.EXPORT.value,
        goods_type=GoodsType.SEA.value,
        package_count=1000,
        notes="Hóa đơn vận chuyển hàng hóa",
        costs=(
            CostRecord(
                cost_id="sample-cost-1",
                bill_id="sample-bill-1",
                cost_type_id=transport.item_id,
                cost_type_name=transport.name,
                supplier_id=supplier_1.item_id,
                supplier_name=supplier_1.name,
                amount=Decimal("5000000"),
                cost_date=today,
                legacy_tag="Hóa đơn",
            ),
            CostRecord(
                cost_id="sample-cost-2",
                bill_id="sample-bill-1",
                cost_type_id=delivery.item_id,
                cost_type_name=delivery.name,
                supplier_id=supplier_2.item_id,
                supplier_name=supplier_2.name,
                amount=Decimal("2000000"),
                cost_date=today,
                attributes=(AttributeValue(name="Trả hộ", value="true"),),
                legacy_tag="Trả hộ",
            ),
        ),
        revenues=(
            RevenueRecord(
                revenue_id="sample-revenue-1",
                bill_id="sample-bill-1",
                amount=Decimal("7000000"),
                revenue_date=today,
            ),
        ),
    )
    bill_2 = BillRecord(
        bill_id="sample-bill-2",
        bill_no="BILL002",
        bill_date=today,
        customer_id=customer_2.item_id,
        customer_name=customer_2.name,
        service_id=service_2.item_id,
        service_name=service_2.name,
        status=BillStatus.IN_PROGRESS.value,
        import_export_type=ImportExportType.IMPORT.value,
        goods_type=GoodsType.SEA.value,
        package_count=500,
        notes="Hóa đơn vận chuyển hàng hóa",
        revenues=(
            RevenueRecord(
                revenue_id="sample-revenue-2",
                bill_id="sample-bill-2",
                amount=Decimal("3000000"),
                revenue_date=today,
            ),
        ),
    )

    return SampleDataset(
        customers=CUSTOMERS,
        suppliers=SUPPLIERS,
        services=SERVICES,
        cost_types=COST_TYPES,
        bills=(bill_1, bill_2),
        cost_prices=(
            CostPriceRecord(
                customer_1.item_id, service_1.item_id, transport.item_id, Decimal("6000000")
            ),
            CostPriceRecord(
                customer_2.item_id, service_2.item_id, delivery.item_id, Decimal("2500000")
            ),
        ),
        prices=(
            PriceRecord(customer_1.item_id, service_1.item_id, Decimal("7000000")),
            PriceRecord(customer_2.item_id, service_2.item_id, Decimal("3000000")),
        ),
    )
