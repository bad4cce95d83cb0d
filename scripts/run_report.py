#!/usr/bin/env python3
"""
Run a billing report against the configured database and print it.

Usage:
    python3 scripts/run_report.py dashboard
    python3 scripts/run_report.py bill <bill-uuid>
    python3 scripts/run_report.py bills --status Completed --limit 20
    python3 scripts/run_report.py customers --timeframe quarter
    python3 scripts/run_report.py suppliers --from 2025-01-01 --to 2025-03-31 --csv out.csv
    python3 scripts/run_report.py profit-loss --timeframe year --csv pl.csv
    python3 scripts/run_report.py detail --from 2025-01-01 --to 2025-01-31

The database URL comes from --db-url, then $BILLING_DATABASE_URL, then
``database.url`` in the configuration.  Reports fall back to sample data
when the database is slow or unreachable; the metadata says so.
"""

import argparse
import json
import sys

from billing_config import get_active_config
from billing_kernel.db.engine import get_session_factory, init_engine_from_url
from billing_kernel.domain.clock import SystemClock
from billing_kernel.logging_config import LogContext, configure_logging
from billing_services import (
    BillingReportService,
    error_response,
    export_bill_detail_report,
    export_customer_report,
    export_profit_loss_report,
    export_supplier_report,
    render_to_dict,
)

EXPORTERS = {
    "customers": export_customer_report,
    "suppliers": export_supplier_report,
    "profit-loss": export_profit_loss_report,
    "detail": export_bill_detail_report,
}


def _add_window_arguments(parser: argparse.ArgumentParser, timeframe: bool = True) -> None:
    if timeframe:
        parser.add_argument(
            "--timeframe", choices=("week", "month", "quarter", "year", "custom"),
            help="Preset window ending today (default: month)",
        )
    parser.add_argument("--from", dest="date_from", help="Start date, YYYY-MM-DD")
    parser.add_argument("--to", dest="date_to", help="End date, YYYY-MM-DD")
    parser.add_argument("--csv", dest="csv_path", help="Write the CSV export to this path")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a billing report.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-url", type=str, help="Database URL override")
    parser.add_argument("--config", type=str, help="YAML configuration file")
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Log level for structured logs on stderr (default: WARNING)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    bill = commands.add_parser("bill", help="One bill with its profit")
    bill.add_argument("bill_id")

    bills = commands.add_parser("bills", help="Filtered bill list")
    bills.add_argument("--customer-id")
    bills.add_argument("--service-id")
    bills.add_argument("--status", help='Bill status, or "all"')
    bills.add_argument("--bill-no", help="Substring of the bill number")
    bills.add_argument("--limit", type=int)
    bills.add_argument("--from", dest="date_from")
    bills.add_argument("--to", dest="date_to")

    commands.add_parser("dashboard", help="Totals, top customers and services, trends")

    _add_window_arguments(commands.add_parser("customers", help="Customer report"))
    suppliers = commands.add_parser("suppliers", help="Supplier report")
    _add_window_arguments(suppliers)
    suppliers.add_argument("--cost-type-id")
    _add_window_arguments(commands.add_parser("profit-loss", help="Profit and loss by month"))
    _add_window_arguments(
        commands.add_parser("detail", help="Bill detail with per-line revenue"), timeframe=False
    )
    return parser


def _run(service: BillingReportService, args: argparse.Namespace):
    match args.command:
        case "bill":
            return service.get_bill(args.bill_id)
        case "bills":
            return service.list_bills(
                customer_id=args.customer_id,
                service_id=args.service_id,
                status=args.status,
                date_from=args.date_from,
                date_to=args.date_to,
                bill_no=args.bill_no,
                limit=args.limit,
            )
        case "dashboard":
            return service.dashboard()
        case "customers":
            return service.customer_report(args.timeframe, args.date_from, args.date_to)
        case "suppliers":
            return service.supplier_report(
                args.timeframe, args.date_from, args.date_to, args.cost_type_id
            )
        case "profit-loss":
            return service.profit_loss_report(args.timeframe, args.date_from, args.date_to)
        case "detail":
            return service.bill_detail_report(args.date_from, args.date_to)
    raise ValueError(f"Unknown command: {args.command}")


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging(level=args.log_level.upper())

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

    service = BillingReportService(get_session_factory(), SystemClock(), config)
    try:
        with LogContext.bind(actor_id="cli"):
            report = _run(service, args)
    except Exception as exc:
        status, body = error_response(exc)
        print(json.dumps({"status": status, **body}, ensure_ascii=False), file=sys.stderr)
        return 1
    finally:
        service.close()

    csv_path = getattr(args, "csv_path", None)
    if csv_path:
        export = EXPORTERS[args.command](report)
        with open(csv_path, "w", encoding="utf-8", newline="") as f:
            f.write(export.content)
        print(f"  Wrote {export.filename} to {csv_path}")
        return 0

    print(json.dumps(render_to_dict(report), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
