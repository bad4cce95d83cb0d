"""
Module: billing_kernel.selectors.reference_selector
Responsibility: Id/name listings of customers, suppliers, services and
    cost types.  Reports use them to seed rows for parties with no activity
    and to resolve display names.
Architecture position: Kernel > Selectors.
"""

from sqlalchemy import select

from billing_kernel.domain.dtos import ReferenceItem
from billing_kernel.models.cost_type import CostType
from billing_kernel.models.party import Customer, Service, Supplier
from billing_kernel.selectors.base import BaseSelector


class ReferenceSelector(BaseSelector[Customer]):
    """Name-ordered listings of reference entities."""

    def _items(self, model) -> list[ReferenceItem]:
        rows = self.session.execute(
            select(model.id, model.name).order_by(model.name, model.id)
        ).all()
        return [ReferenceItem(item_id=str(row.id), name=row.name) for row in rows]

    def customers(self) -> list[ReferenceItem]:
        return self._items(Customer)

    def suppliers(self) -> list[ReferenceItem]:
        return self._items(Supplier)

    def services(self) -> list[ReferenceItem]:
        return self._items(Service)

    def cost_types(self) -> list[ReferenceItem]:
        return self._items(CostType)
