"""
Maintenance writes for the classification attributes.

Responsibility:
    - ``ensure_classification_attributes`` gives every cost type the
      paid-on-behalf and no-invoice attributes it lacks.
    - ``backfill_legacy_tags`` turns legacy ``tt_hd`` tags into "true"
      attribute-values, so classification reads a single source.

Architecture position:
    Services.  The only module that writes classification data; the
    report path stays read-only.  The caller owns the transaction
    (``session_scope``); these functions add and flush but never commit.

Invariants enforced:
    - Idempotent: a second run adds nothing.
    - An existing attribute-value is never overwritten, whatever its value.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_engines.classification import (
    CostCategory,
    CostClassifier,
    legacy_category,
    normalize_name,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.bill import Cost
from billing_kernel.models.cost_type import (
    CostAttributeValue,
    CostType,
    CostTypeAttribute,
)

logger = get_logger("services.attribute_maintenance")

PAID_ON_BEHALF_ATTRIBUTE = CostCategory.PAID_ON_BEHALF.label
NO_INVOICE_ATTRIBUTE = CostCategory.NO_INVOICE.label
DEFAULT_ATTRIBUTE_NAMES = (PAID_ON_BEHALF_ATTRIBUTE, NO_INVOICE_ATTRIBUTE)
TRUE_VALUE = "true"


def _find_attribute(cost_type: CostType, *names: str) -> CostTypeAttribute | None:
    wanted = {normalize_name(n) for n in names}
    for attribute in cost_type.attributes:
        if normalize_name(attribute.name) in wanted:
            return attribute
    return None


def ensure_classification_attributes(
    session: Session,
    names: Sequence[str] = DEFAULT_ATTRIBUTE_NAMES,
) -> int:
    """
    Add each attribute in ``names`` to every cost type that lacks it.

    Names match after trimming and case folding.

    Returns:
        Number of attributes added.
    """
    added = 0
    cost_types = session.execute(select(CostType)).scalars().all()
    for cost_type in cost_types:
        for name in names:
            if _find_attribute(cost_type, name) is not None:
                continue
            cost_type.attributes.append(CostTypeAttribute(name=name))
            added += 1
            logger.info(
                "classification_attribute_added",
                extra={"cost_type_id": str(cost_type.id), "attribute": name},
            )
    session.flush()

    logger.info(
        "classification_attributes_ensured",
        extra={"cost_type_count": len(cost_types), "added": added},
    )
    return added


def backfill_legacy_tags(
    session: Session,
    classifier: CostClassifier | None = None,
) -> int:
    """
    Write a "true" attribute-value for costs tagged "Trả hộ" or
    "Ko hóa đơn" in the legacy column.

    The attribute is created on the cost type when missing.  Costs that
    already carry a value for that attribute are left alone.

    Returns:
        Number of attribute-values written.
    """
    rules = (classifier or CostClassifier()).rules
    names_for = {
        CostCategory.PAID_ON_BEHALF: rules.paid_on_behalf_names,
        CostCategory.NO_INVOICE: rules.no_invoice_names,
    }

    written = 0
    skipped = 0
    costs = session.execute(select(Cost).order_by(Cost.cost_date, Cost.id)).scalars().all()
    for cost in costs:
        category = legacy_category(cost.tt_hd)
        if category is None or category is CostCategory.INVOICED:
            continue

        names = names_for[category]
        wanted = {normalize_name(n) for n in names}
        if any(normalize_name(v.attribute.name) in wanted for v in cost.attribute_values):
            skipped += 1
            continue

        attribute = _find_attribute(cost.cost_type, *names)
        if attribute is None:
            name = category.label if normalize_name(category.label) in wanted else names[0]
            attribute = CostTypeAttribute(name=name)
            cost.cost_type.attributes.append(attribute)
            session.flush()

        cost.attribute_values.append(
            CostAttributeValue(attribute_id=attribute.id, attribute=attribute, value=TRUE_VALUE)
        )
        written += 1

    session.flush()
    logger.info(
        "legacy_tags_backfilled",
        extra={"cost_count": len(costs), "written": written, "already_set": skipped},
    )
    return written
