"""ORM models for the billing kernel."""

from billing_kernel.models.bill import (
    Bill,
    BillStatus,
    Cost,
    GoodsType,
    ImportExportType,
    Revenue,
)
from billing_kernel.models.cost_type import (
    CostAttributeValue,
    CostType,
    CostTypeAttribute,
)
from billing_kernel.models.party import Customer, Service, Supplier
from billing_kernel.models.pricing import CostPrice, Price

__all__ = [
    "Bill",
    "BillStatus",
    "Cost",
    "CostAttributeValue",
    "CostPrice",
    "CostType",
    "CostTypeAttribute",
    "Customer",
    "GoodsType",
    "ImportExportType",
    "Price",
    "Revenue",
    "Service",
    "Supplier",
]
