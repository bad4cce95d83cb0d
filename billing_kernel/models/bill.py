"""
Module: billing_kernel.models.bill
Responsibility: ORM persistence for bills and the lines that hang off them:
    cost lines (expenses, each paid to a supplier) and revenue lines
    (amounts billed to the customer).
Architecture position: Kernel > Models.  May import from db/ and sibling
    models only.

Invariants enforced:
    - Every Cost and Revenue belongs to exactly one Bill (NOT NULL FK,
      deleted with the bill).
    - Lines keep the order they were appended in (position).
    - Classification is never stored as a category column; it is derived
      from CostAttributeValue rows.  tt_hd is the legacy free-text tag kept
      only so it can be migrated into attribute-values.

Failure modes:
    - IntegrityError on a cost/revenue whose bill, cost type or supplier
      does not exist.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TimestampedBase
from billing_kernel.models.cost_type import CostAttributeValue, CostType
from billing_kernel.models.party import Customer, Service, Supplier


class BillStatus(str, Enum):
    """Bill lifecycle status as entered by operators."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ImportExportType(str, Enum):
    IMPORT = "Nhập"
    EXPORT = "Xuất"


class GoodsType(str, Enum):
    AIR = "Air"
    SEA = "Sea"
    LCL = "LCL"
    DOMESTIC = "Dom"


LEGACY_INVOICED_TAG = "Hóa đơn"


class Bill(TimestampedBase):
    """
    A shipment billed to one customer for one service.

    Contract:
        Aggregate root for cost and revenue lines.  All money figures for
        the bill are computed from its lines; none are stored here.

    Guarantees:
        - costs, revenues and their parties load eagerly (selectin) so a
          loaded bill can be converted to a DTO after the session closes.
    """

    __tablename__ = "bills"

    __table_args__ = (
        Index("idx_bill_date", "bill_date"),
        Index("idx_bill_customer", "customer_id"),
        Index("idx_bill_service", "service_id"),
        Index("idx_bill_status", "status"),
    )

    bill_no: Mapped[str] = mapped_column(String(50), nullable=False)

    bill_date: Mapped[date] = mapped_column(Date, nullable=False)

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
    )

    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BillStatus.PENDING.value,
    )

    invoice_no: Mapped[str | None] = mapped_column(String(50), nullable=True)

    import_export_type: Mapped[str | None] = mapped_column(String(10), nullable=True)

    package_count: Mapped[int | None] = mapped_column(nullable=True)

    goods_type: Mapped[str | None] = mapped_column(String(10), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    customer: Mapped[Customer] = relationship(
        Customer,
        back_populates="bills",
        lazy="selectin",
    )

    service: Mapped[Service] = relationship(Service, lazy="selectin")

    costs: Mapped[list["Cost"]] = relationship(
        "Cost",
        back_populates="bill",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: [Cost.position, Cost.id],
        collection_class=ordering_list("position"),
    )

    revenues: Mapped[list["Revenue"]] = relationship(
        "Revenue",
        back_populates="bill",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by=lambda: [Revenue.position, Revenue.id],
        collection_class=ordering_list("position"),
    )

    def __repr__(self) -> str:
        return f"<Bill {self.bill_no} ({self.status})>"


class Cost(TimestampedBase):
    """
    One expense line on a bill, paid to one supplier.

    Guarantees:
        - attribute_values load eagerly with their attribute names.
    """

    __tablename__ = "costs"

    __table_args__ = (
        Index("idx_cost_bill", "bill_id"),
        Index("idx_cost_supplier", "supplier_id"),
        Index("idx_cost_type", "cost_type_id"),
        Index("idx_cost_date", "cost_date"),
    )

    bill_id: Mapped[UUID] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
    )

    cost_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("cost_types.id", ondelete="RESTRICT"),
        nullable=False,
    )

    supplier_id: Mapped[UUID] = mapped_column(
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Line order within the bill, kept by the ordering_list on Bill.costs.
    position: Mapped[int] = mapped_column(nullable=False, default=0)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    cost_date: Mapped[date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Legacy free-text classification ("Hóa đơn" / "Trả hộ" / "Ko hóa đơn").
    # Read only by the attribute backfill.
    tt_hd: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=LEGACY_INVOICED_TAG,
    )

    bill: Mapped[Bill] = relationship(Bill, back_populates="costs")

    cost_type: Mapped[CostType] = relationship(CostType, lazy="selectin")

    supplier: Mapped[Supplier] = relationship(
        Supplier,
        back_populates="costs",
        lazy="selectin",
    )

    attribute_values: Mapped[list[CostAttributeValue]] = relationship(
        CostAttributeValue,
        back_populates="cost",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Cost {self.amount} on bill {self.bill_id}>"


class Revenue(TimestampedBase):
    """Amount billed to the customer against a bill."""

    __tablename__ = "revenues"

    __table_args__ = (Index("idx_revenue_bill", "bill_id"),)

    bill_id: Mapped[UUID] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
    )

    service_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=True,
    )

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    revenue_date: Mapped[date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    bill: Mapped[Bill] = relationship(Bill, back_populates="revenues")
