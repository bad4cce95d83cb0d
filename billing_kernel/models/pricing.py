"""
Module: billing_kernel.models.pricing
Responsibility: ORM persistence for standing prices.  Price is the flat
    list price of a service for a customer; CostPrice is the price charged
    to a customer for one cost type on one service, used by priced revenue
    resolution.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one Price per (customer, service) (uq_price_customer_service).
    - At most one CostPrice per (customer, service, cost type)
      (uq_cost_price_key).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TimestampedBase


class Price(TimestampedBase):
    """Flat list price of a service for a customer."""

    __tablename__ = "prices"

    __table_args__ = (
        UniqueConstraint("customer_id", "service_id", name="uq_price_customer_service"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )

    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)


class CostPrice(TimestampedBase):
    """Price charged for one cost type on one service for a customer."""

    __tablename__ = "cost_prices"

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "service_id", "cost_type_id", name="uq_cost_price_key"
        ),
    )

    customer_id: Mapped[UUID] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )

    service_id: Mapped[UUID] = mapped_column(
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
    )

    cost_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("cost_types.id", ondelete="CASCADE"),
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
