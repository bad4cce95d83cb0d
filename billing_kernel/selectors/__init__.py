"""Read-only selectors returning DTOs for the calculation engines."""

from billing_kernel.selectors.base import BaseSelector, parse_identifier
from billing_kernel.selectors.bill_selector import (
    ALL_STATUSES,
    BillSelector,
    bill_to_record,
    cost_to_record,
)
from billing_kernel.selectors.pricing_selector import PricingSelector
from billing_kernel.selectors.reference_selector import ReferenceSelector

__all__ = [
    "ALL_STATUSES",
    "BaseSelector",
    "BillSelector",
    "PricingSelector",
    "ReferenceSelector",
    "bill_to_record",
    "cost_to_record",
    "parse_identifier",
]
