"""
Module: billing_kernel.models.party
Responsibility: ORM persistence for the parties and catalogue entries a bill
    refers to: customers (billed), suppliers (paid for cost lines) and
    services (the logistics product sold).
Architecture position: Kernel > Models.  May import from db/ only.

Failure modes:
    - IntegrityError on deleting a party still referenced by bills, costs
      or prices (foreign keys are RESTRICT).
"""

from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from billing_kernel.models.bill import Bill, Cost


class _ContactMixin:
    """Contact columns shared by customers and suppliers."""

    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(String(1000), nullable=True)


class Customer(_ContactMixin, TimestampedBase):
    """
    Party that is billed for logistics services.

    Non-goals:
        - No credit control; outstanding balances are not tracked here.
    """

    __tablename__ = "customers"

    __table_args__ = (Index("idx_customer_name", "name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    bills: Mapped[list["Bill"]] = relationship(
        "Bill",
        back_populates="customer",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Customer {self.name}>"


class Supplier(_ContactMixin, TimestampedBase):
    """Party paid for an individual cost line."""

    __tablename__ = "suppliers"

    __table_args__ = (Index("idx_supplier_name", "name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    costs: Mapped[list["Cost"]] = relationship(
        "Cost",
        back_populates="supplier",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Supplier {self.name}>"


class Service(TimestampedBase):
    """Logistics product sold on a bill (e.g. container transport)."""

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<Service {self.name}>"
