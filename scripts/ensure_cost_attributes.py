#!/usr/bin/env python3
"""
Give every cost type the "Trả hộ" and "Ko hóa đơn" attributes, and
optionally backfill attribute-values from the legacy tt_hd column.

Usage:
    python3 scripts/ensure_cost_attributes.py
    python3 scripts/ensure_cost_attributes.py --backfill
    python3 scripts/ensure_cost_attributes.py --db-url sqlite:///billing.db --dry-run
"""

import argparse
import sys

from billing_config import get_active_config
from billing_engines.classification import CostClassifier
from billing_kernel.db.engine import get_session, init_engine_from_url, session_scope
from billing_kernel.logging_config import configure_logging
from billing_services.attribute_maintenance import (
    backfill_legacy_tags,
    ensure_classification_attributes,
)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Ensure classification attributes exist on every cost type.",
    )
    parser.add_argument("--db-url", type=str, help="Database URL override")
    parser.add_argument("--config", type=str, help="YAML configuration file")
    parser.add_argument(
        "--backfill", action="store_true",
        help="Also write attribute-values for costs tagged in the legacy tt_hd column",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Report what would change and roll back",
    )
    args = parser.parse_args()

    configure_logging()
    config = get_active_config(args.config)
    db_url = args.db_url or config.database.url
    if not db_url:
        print("  ERROR: No database URL configured (use --db-url)", file=sys.stderr)
        return 1

    try:
        init_engine_from_url(db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot initialise database engine: {exc}", file=sys.stderr)
        return 1

    classifier = CostClassifier(config.classification.to_rules())

    if args.dry_run:
        session = get_session()
        try:
            added = ensure_classification_attributes(session)
            written = backfill_legacy_tags(session, classifier) if args.backfill else 0
            session.rollback()
        finally:
            session.close()
        print(f"  [dry run] Would add {added} attribute(s) and {written} value(s)")
        return 0

    try:
        with session_scope() as session:
            added = ensure_classification_attributes(session)
            written = backfill_legacy_tags(session, classifier) if args.backfill else 0
    except Exception as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    print(f"  Added {added} attribute(s)")
    if args.backfill:
        print(f"  Backfilled {written} attribute value(s) from tt_hd")
    return 0


if __name__ == "__main__":
    sys.exit(main())
