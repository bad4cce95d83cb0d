"""
Module: billing_engines.classification
Responsibility:
    Assign every cost line exactly one accounting category -- Invoiced,
    Paid-on-behalf or No-invoice -- from its sparse attribute-values.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import billing_kernel.domain and sibling engine modules.

Invariants enforced:
    - A cost with no attribute-values is INVOICED.
    - Exactly one category per cost; PAID_ON_BEHALF wins over NO_INVOICE
      when both flags are true.
    - Attribute-values are the only classification input.  The legacy
      ``tt_hd`` tag is read solely by ``legacy_category`` for migration.
    - Name matching is NFC-normalized, trimmed and case-insensitive, so
      "Trả hộ" typed with combining marks still matches.

Failure modes:
    - None at classification time; unknown attributes are ignored.
    - ValueError when ClassificationRules is built with an empty name set.

Usage:
    from billing_engines.classification import CostClassifier, CostCategory

    classifier = CostClassifier()
    category = classifier.classify(cost_record)
    if category is CostCategory.INVOICED:
        ...
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from billing_engines.tracer import traced_engine
from billing_kernel.domain.dtos import AttributeValue, CostRecord
from billing_kernel.logging_config import get_logger

logger = get_logger("engines.classification")


class CostCategory(str, Enum):
    """Accounting category of a cost line."""

    INVOICED = "invoiced"  # Reduces profit
    PAID_ON_BEHALF = "paid_on_behalf"  # Pass-through
    NO_INVOICE = "no_invoice"  # Recorded, not invoiced

    @property
    def label(self) -> str:
        """Display label used in reports and exports."""
        return _CATEGORY_LABELS[self]

    @property
    def reduces_profit(self) -> bool:
        return self is CostCategory.INVOICED


_CATEGORY_LABELS = {
    CostCategory.INVOICED: "Hóa đơn",
    CostCategory.PAID_ON_BEHALF: "Trả hộ",
    CostCategory.NO_INVOICE: "Ko hóa đơn",
}

DEFAULT_PAID_ON_BEHALF_NAMES = ("Paid-on-behalf", "Trả hộ")
DEFAULT_NO_INVOICE_NAMES = ("No-invoice", "Ko hóa đơn")
DEFAULT_TRUE_VALUES = ("true",)


def normalize_name(value: str) -> str:
    """NFC-normalize, trim and casefold an attribute name or value."""
    return unicodedata.normalize("NFC", value).strip().casefold()


@dataclass(frozen=True)
class ClassificationRules:
    """
    Attribute names and values that mark a cost as pass-through.

    Contract:
        Name sets are compared after ``normalize_name``.
    Guarantees:
        - Both name sets and the true-value set are non-empty.
    """

    paid_on_behalf_names: tuple[str, ...] = DEFAULT_PAID_ON_BEHALF_NAMES
    no_invoice_names: tuple[str, ...] = DEFAULT_NO_INVOICE_NAMES
    true_values: tuple[str, ...] = DEFAULT_TRUE_VALUES

    def __post_init__(self) -> None:
        if not self.paid_on_behalf_names:
            raise ValueError("paid_on_behalf_names must not be empty")
        if not self.no_invoice_names:
            raise ValueError("no_invoice_names must not be empty")
        if not self.true_values:
            raise ValueError("true_values must not be empty")

    @property
    def attribute_names(self) -> tuple[str, ...]:
        """Every attribute name that participates in classification."""
        return self.paid_on_behalf_names + self.no_invoice_names


def attribute_flag(
    attributes: Iterable[AttributeValue],
    names: Sequence[str],
    true_values: Sequence[str] = DEFAULT_TRUE_VALUES,
) -> bool | None:
    """
    Sparse lookup of a boolean attribute.

    Returns None when no attribute-value with one of ``names`` exists,
    otherwise whether any of them holds a true value.
    """
    wanted = {normalize_name(n) for n in names}
    truthy = {normalize_name(v) for v in true_values}
    found: bool | None = None
    for attribute in attributes:
        if normalize_name(attribute.name or "") not in wanted:
            continue
        if normalize_name(attribute.value or "") in truthy:
            return True
        found = False
    return found


@dataclass(frozen=True)
class ClassifiedCost:
    """A cost line paired with its computed category."""

    cost: CostRecord
    category: CostCategory

    @property
    def amount(self):
        return self.cost.amount


class CostClassifier:
    """
    Classify cost lines from their attribute-values.

    Contract:
        Pure; no I/O.  The same cost always yields the same category for
        the same rules.
    Non-goals:
        - Does not read the legacy ``tt_hd`` tag.
        - Does not validate amounts.
    """

    def __init__(self, rules: ClassificationRules | None = None):
        self.rules = rules or ClassificationRules()

    def classify(
        self,
        cost: CostRecord,
        attribute_values: Iterable[AttributeValue] | None = None,
    ) -> CostCategory:
        """
        Category of one cost.

        Args:
            cost: Cost line to classify.
            attribute_values: Overrides ``cost.attributes`` when given.
        """
        attributes = tuple(
            attribute_values if attribute_values is not None else cost.attributes
        )
        if not attributes:
            return CostCategory.INVOICED

        if attribute_flag(attributes, self.rules.paid_on_behalf_names, self.rules.true_values):
            return CostCategory.PAID_ON_BEHALF
        if attribute_flag(attributes, self.rules.no_invoice_names, self.rules.true_values):
            return CostCategory.NO_INVOICE
        return CostCategory.INVOICED

    @traced_engine("classification", "1.0")
    def classify_all(self, costs: Iterable[CostRecord]) -> tuple[ClassifiedCost, ...]:
        """Classify a batch, preserving order."""
        return tuple(ClassifiedCost(cost=c, category=self.classify(c)) for c in costs)


_LEGACY_TAGS = {
    normalize_name(label): category for category, label in _CATEGORY_LABELS.items()
}


def legacy_category(tag: str | None) -> CostCategory | None:
    """
    Category named by a legacy ``tt_hd`` tag, or None if unrecognised.

    Used only by the attribute backfill.
    """
    if not tag:
        return None
    category = _LEGACY_TAGS.get(normalize_name(tag))
    if category is None:
        logger.debug("legacy_tag_unrecognised", extra={"tag": tag})
    return category
