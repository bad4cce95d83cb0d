#!/usr/bin/env python3
"""
Seed a database with a small set of customers, suppliers, services, cost
types, prices and three months of bills.

Drops all billing tables, recreates them and commits.

Usage:
    python3 scripts/seed_data.py --db-url sqlite:///billing.db
    python3 scripts/seed_data.py            # uses the configured database.url
"""

import argparse
import sys
from datetime import date, timedelta
from decimal import Decimal

from billing_config import get_active_config
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    session_scope,
)
from billing_kernel.logging_config import configure_logging
from billing_kernel.models import (
    Bill,
    BillStatus,
    Cost,
    CostAttributeValue,
    CostPrice,
    CostType,
    CostTypeAttribute,
    Customer,
    GoodsType,
    ImportExportType,
    Price,
    Revenue,
    Service,
    Supplier,
)

PAID_ON_BEHALF = "Trả hộ"
NO_INVOICE = "Ko hóa đơn"


def _seed(session, today: date) -> int:
    customers = [
        Customer(name="Công ty ABC", contact_person="Nguyễn Văn A", email="abc@example.com"),
        Customer(name="Công ty XYZ", contact_person="Trần Thị B", email="xyz@example.com"),
        Customer(name="Công ty Minh Phát", contact_person="Lê Văn C"),
    ]
    suppliers = [
        Supplier(name="Nhà cung cấp 1", phone="0901000001"),
        Supplier(name="Nhà cung cấp 2", phone="0901000002"),
        Supplier(name="Cảng Cát Lái"),
    ]
    services = [
        Service(name="Vận chuyển container"),
        Service(name="Vận chuyển hàng lẻ"),
    ]
    cost_types = [
        CostType(name="Chi phí vận chuyển"),
        CostType(name="Chi phí giao hàng"),
        CostType(name="Phí nâng hạ"),
    ]
    for cost_type in cost_types:
        cost_type.attributes = [
            CostTypeAttribute(name=PAID_ON_BEHALF),
            CostTypeAttribute(name=NO_INVOICE),
        ]
    session.add_all(customers + suppliers + services + cost_types)
    session.flush()

    transport, delivery, lifting = cost_types
    session.add_all(
        [
            Price(customer_id=customers[0].id, service_id=services[0].id, price=Decimal("7000000")),
            Price(customer_id=customers[1].id, service_id=services[1].id, price=Decimal("3000000")),
            CostPrice(
                customer_id=customers[0].id,
                service_id=services[0].id,
                cost_type_id=transport.id,
                price=Decimal("6000000"),
            ),
            CostPrice(
                customer_id=customers[0].id,
                service_id=services[0].id,
                cost_type_id=delivery.id,
                price=Decimal("2500000"),
            ),
            CostPrice(
                customer_id=customers[1].id,
                service_id=services[1].id,
                cost_type_id=lifting.id,
                price=Decimal("1200000"),
            ),
        ]
    )

    def cost(bill, cost_type, supplier, amount, flag=None):
        line = Cost(
            cost_type_id=cost_type.id,
            supplier_id=supplier.id,
            amount=Decimal(amount),
            cost_date=bill.bill_date,
            tt_hd=flag or "Hóa đơn",
        )
        if flag:
            line.attribute_values = [
                CostAttributeValue(attribute=cost_type.attribute_named(flag), value="true")
            ]
        bill.costs.append(line)

    bill_count = 0
    for month_offset in range(3):
        bill_date = today - timedelta(days=30 * month_offset + 2)
        for index, customer in enumerate(customers[:2]):
            bill_count += 1
            bill = Bill(
                bill_no=f"BILL{bill_date:%y%m}{index + 1:02d}",
                bill_date=bill_date,
                customer_id=customer.id,
                service_id=services[index].id,
                status=BillStatus.COMPLETED.value if month_offset else BillStatus.IN_PROGRESS.value,
                import_export_type=(
                    ImportExportType.EXPORT.value if index == 0 else ImportExportType.IMPORT.value
                ),
                goods_type=GoodsType.SEA.value,
                package_count=500 * (index + 1),
                invoice_no=f"INV-{bill_count:04d}",
            )
            session.add(bill)
            if index == 0:
                cost(bill, transport, suppliers[0], "5000000")
                cost(bill, delivery, suppliers[1], "2000000", PAID_ON_BEHALF)
                bill.revenues.append(
                    Revenue(amount=Decimal("8500000"), revenue_date=bill_date)
                )
            else:
                cost(bill, lifting, suppliers[2], "900000")
                cost(bill, lifting, suppliers[2], "150000", NO_INVOICE)
                bill.revenues.append(
                    Revenue(amount=Decimal("3000000"), revenue_date=bill_date)
                )
    return bill_count


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the billing database.")
    parser.add_argument("--db-url", type=str, help="Database URL override")
    parser.add_argument("--config", type=str, help="YAML configuration file")
    args = parser.parse_args()

    configure_logging()
    config = get_active_config(args.config)
    db_url = args.db_url or config.database.url
    if not db_url:
        print("  ERROR: No database URL configured (use --db-url)", file=sys.stderr)
        return 1

    print()
    print("  [1/3] Connecting...")
    try:
        init_engine_from_url(db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print("  [2/3] Dropping old tables and recreating schema...")
    drop_tables()
    create_tables()

    print("  [3/3] Seeding bills...")
    with session_scope() as session:
        count = _seed(session, date.today())

    print(f"  Seeded {count} bills.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
