"""
Module: billing_kernel.selectors.pricing_selector
Responsibility: Read-only access to standing prices (flat service prices
    and per-cost-type cost prices) as DTOs for the revenue resolver.
Architecture position: Kernel > Selectors.
"""

from sqlalchemy import select

from billing_kernel.domain.dtos import CostPriceRecord, PriceRecord
from billing_kernel.models.pricing import CostPrice, Price
from billing_kernel.selectors.base import BaseSelector


class PricingSelector(BaseSelector[CostPrice]):
    """Selector for Price and CostPrice rows, ordered by creation time."""

    def cost_prices(self) -> list[CostPriceRecord]:
        rows = self.session.execute(
            select(CostPrice).order_by(CostPrice.created_at, CostPrice.id)
        ).scalars()
        return [
            CostPriceRecord(
                customer_id=str(row.customer_id),
                service_id=str(row.service_id),
                cost_type_id=str(row.cost_type_id),
                price=row.price,
            )
            for row in rows
        ]

    def prices(self) -> list[PriceRecord]:
        rows = self.session.execute(
            select(Price).order_by(Price.created_at, Price.id)
        ).scalars()
        return [
            PriceRecord(
                customer_id=str(row.customer_id),
                service_id=str(row.service_id),
                price=row.price,
            )
            for row in rows
        ]
