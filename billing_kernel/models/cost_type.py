"""
Module: billing_kernel.models.cost_type
Responsibility: ORM persistence for cost types and their sparse
    attribute/value tags.  Attribute-values are the canonical source for
    cost classification (paid-on-behalf / no-invoice).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one attribute with a given name per cost type
      (uq_cost_type_attribute_name).
    - At most one value per (cost, attribute) (uq_cost_attribute_value).
    - Absence of a value row means "not set", never "false".

Failure modes:
    - IntegrityError on duplicate attribute names or duplicate values.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from billing_kernel.models.bill import Cost


class CostType(TimestampedBase):
    """
    Category of expense charged against a bill (e.g. trucking, delivery).

    Guarantees:
        - attributes are loaded eagerly (selectin) so classification never
          triggers lazy loads outside the session.
    """

    __tablename__ = "cost_types"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    attributes: Mapped[list["CostTypeAttribute"]] = relationship(
        "CostTypeAttribute",
        back_populates="cost_type",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CostTypeAttribute.name",
    )

    def attribute_named(self, name: str) -> "CostTypeAttribute | None":
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None

    def __repr__(self) -> str:
        return f"<CostType {self.name}>"


class CostTypeAttribute(TimestampedBase):
    """Named flag that cost lines of a cost type may carry."""

    __tablename__ = "cost_type_attributes"

    __table_args__ = (
        UniqueConstraint("cost_type_id", "name", name="uq_cost_type_attribute_name"),
    )

    cost_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("cost_types.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    cost_type: Mapped[CostType] = relationship(
        CostType,
        back_populates="attributes",
    )

    def __repr__(self) -> str:
        return f"<CostTypeAttribute {self.name}>"


class CostAttributeValue(TimestampedBase):
    """
    Value of one attribute on one cost line.

    Contract:
        value holds "true" or "false" as text; classification treats only
        a trimmed, case-insensitive "true" as set.
    """

    __tablename__ = "cost_attribute_values"

    __table_args__ = (
        UniqueConstraint("cost_id", "attribute_id", name="uq_cost_attribute_value"),
    )

    cost_id: Mapped[UUID] = mapped_column(
        ForeignKey("costs.id", ondelete="CASCADE"),
        nullable=False,
    )

    attribute_id: Mapped[UUID] = mapped_column(
        ForeignKey("cost_type_attributes.id", ondelete="CASCADE"),
        nullable=False,
    )

    value: Mapped[str] = mapped_column(String(50), nullable=False)

    cost: Mapped["Cost"] = relationship(
        "Cost",
        back_populates="attribute_values",
    )

    attribute: Mapped[CostTypeAttribute] = relationship(
        CostTypeAttribute,
        lazy="joined",
    )
