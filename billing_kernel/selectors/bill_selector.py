"""
Module: billing_kernel.selectors.bill_selector
Responsibility: Read-only queries over bills and cost lines, returning
    BillRecord / CostRecord DTOs for the calculation engines.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Bills come back ordered by bill date descending, then bill number.
    - Cost and revenue lines keep the relationship order defined on Bill.
    - Window bounds are inclusive calendar dates.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from billing_kernel.domain.dtos import (
    AttributeValue,
    BillRecord,
    CostRecord,
    RevenueRecord,
)
from billing_kernel.exceptions import InvalidFilterError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.bill import Bill, Cost
from billing_kernel.models.cost_type import CostAttributeValue
from billing_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.bill")

ALL_STATUSES = "all"


def cost_to_record(cost: Cost) -> CostRecord:
    """Convert a loaded Cost row to its DTO."""
    return CostRecord(
        cost_id=str(cost.id),
        bill_id=str(cost.bill_id),
        cost_type_id=str(cost.cost_type_id),
        cost_type_name=cost.cost_type.name if cost.cost_type else "",
        supplier_id=str(cost.supplier_id),
        supplier_name=cost.supplier.name if cost.supplier else "",
        amount=cost.amount,
        cost_date=cost.cost_date,
        attributes=tuple(
            AttributeValue(name=av.attribute.name, value=av.value)
            for av in cost.attribute_values
            if av.attribute is not None
        ),
        legacy_tag=cost.tt_hd,
        notes=cost.notes,
    )


def bill_to_record(bill: Bill) -> BillRecord:
    """Convert a loaded Bill row (with lines) to its DTO."""
    return BillRecord(
        bill_id=str(bill.id),
        bill_no=bill.bill_no,
        bill_date=bill.bill_date,
        customer_id=str(bill.customer_id),
        customer_name=bill.customer.name if bill.customer else "",
        service_id=str(bill.service_id),
        service_name=bill.service.name if bill.service else "",
        status=bill.status,
        costs=tuple(cost_to_record(c) for c in bill.costs),
        revenues=tuple(
            RevenueRecord(
                revenue_id=str(r.id),
                bill_id=str(r.bill_id),
                amount=r.amount,
                revenue_date=r.revenue_date,
            )
            for r in bill.revenues
        ),
        invoice_no=bill.invoice_no,
        import_export_type=bill.import_export_type,
        goods_type=bill.goods_type,
        package_count=bill.package_count,
        notes=bill.notes,
    )


class BillSelector(BaseSelector[Bill]):
    """
    Selector for bills and their cost lines.

    Guarantees:
        - Read-only.
        - Lines, parties and attribute-values load eagerly (selectin), so
          returned DTOs never depend on the session.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get_bill(self, bill_id: str | UUID) -> BillRecord | None:
        """
        Get a bill with all its lines by ID.

        Returns None for unknown or malformed ids.
        """
        try:
            key = self._as_uuid(bill_id, "bill_id")
        except InvalidFilterError:
            logger.debug("bill_id_malformed", extra={"bill_id": str(bill_id)})
            return None

        bill = self.session.execute(
            select(Bill).where(Bill.id == key)
        ).scalar_one_or_none()

        if bill is None:
            return None
        return bill_to_record(bill)

    def list_bills(
        self,
        *,
        customer_id: str | None = None,
        service_id: str | None = None,
        status: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        bill_no_contains: str | None = None,
        limit: int | None = None,
    ) -> list[BillRecord]:
        """
        List bills matching all given filters.

        Args:
            customer_id: Only bills of this customer.
            service_id: Only bills for this service.
            status: Bill status value; None or "all" means any status.
            date_from: Inclusive lower bound on bill date.
            date_to: Inclusive upper bound on bill date.
            bill_no_contains: Case-insensitive substring of the bill number.
            limit: Maximum number of bills.

        Raises:
            InvalidFilterError: customer_id / service_id is not an identifier.
        """
        stmt = select(Bill)

        if customer_id:
            stmt = stmt.where(Bill.customer_id == self._as_uuid(customer_id, "customer_id"))
        if service_id:
            stmt = stmt.where(Bill.service_id == self._as_uuid(service_id, "service_id"))
        if status and status != ALL_STATUSES:
            stmt = stmt.where(Bill.status == status)
        if date_from is not None:
            stmt = stmt.where(Bill.bill_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Bill.bill_date <= date_to)
        if bill_no_contains:
            stmt = stmt.where(Bill.bill_no.icontains(bill_no_contains, autoescape=True))

        stmt = stmt.order_by(Bill.bill_date.desc(), Bill.bill_no.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        bills = self.session.execute(stmt).scalars().all()
        return [bill_to_record(b) for b in bills]

    def costs_in_window(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        cost_type_id: str | None = None,
    ) -> list[CostRecord]:
        """
        Cost lines whose cost date falls in the inclusive window.

        Raises:
            InvalidFilterError: cost_type_id is not an identifier.
        """
        stmt = select(Cost).options(
            selectinload(Cost.attribute_values).joinedload(CostAttributeValue.attribute)
        )
        if date_from is not None:
            stmt = stmt.where(Cost.cost_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Cost.cost_date <= date_to)
        if cost_type_id:
            stmt = stmt.where(Cost.cost_type_id == self._as_uuid(cost_type_id, "cost_type_id"))

        stmt = stmt.order_by(Cost.cost_date, Cost.created_at, Cost.bill_id, Cost.position)
        costs = self.session.execute(stmt).scalars().all()
        return [cost_to_record(c) for c in costs]

