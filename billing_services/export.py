"""
CSV export of billing reports.

Responsibility:
    Turn report DTOs into downloadable UTF-8 CSV payloads with Vietnamese
    column headers, a header row, one row per report row and, where the
    report has one, a summary row.

Invariants enforced:
    - Amounts are written with exactly two decimal places (HALF_UP).
    - Quoting is left to ``csv.writer`` so names containing commas or
      quotes stay in one cell.
    - Export never recomputes figures; totals come from the report.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from billing_engines.detail import DetailRow, DetailRowKind
from billing_engines.profit import ZERO, round_amount
from billing_services.models import (
    BillDetailReport,
    CustomerReport,
    ProfitLossReport,
    SupplierReport,
)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
SUMMARY_LABEL = "TỔNG"

CUSTOMER_FILENAME = "bao-cao-khach-hang.csv"
SUPPLIER_FILENAME = "bao-cao-nha-cung-cap.csv"
PROFIT_LOSS_FILENAME = "bao-cao-loi-nhuan.csv"

CUSTOMER_HEADERS = (
    "ID Khách hàng",
    "Tên Khách hàng",
    "Số hóa đơn",
    "Doanh thu",
    "Chi phí Hóa đơn",
    "Chi phí Trả hộ",
    "Chi phí Ko hóa đơn",
    "Tổng chi phí",
    "Lợi nhuận",
    "Tỷ suất lợi nhuận (%)",
)

SUPPLIER_HEADERS = (
    "ID NCC",
    "Tên nhà cung cấp",
    "Loại chi phí",
    "Số giao dịch",
    "Chi phí Hóa đơn",
    "Chi phí Trả hộ",
    "Chi phí Ko hóa đơn",
    "Tổng chi phí",
    "Chi phí trung bình",
    "Phần trăm (%)",
)

PROFIT_LOSS_HEADERS = (
    "Thời gian",
    "Số hóa đơn",
    "Doanh thu",
    "Chi phí Hóa đơn",
    "Chi phí Trả hộ",
    "Chi phí Ko hóa đơn",
    "Tổng chi phí",
    "Lợi nhuận",
    "Tỷ suất Lợi nhuận (%)",
)

BILL_DETAIL_HEADERS = (
    "STT",
    "Số bill",
    "Ngày",
    "Khách hàng",
    "Số invoice",
    "Số kiện",
    "Loại hàng",
    "Nhà cung cấp",
    "Loại chi phí",
    "Thuộc tính",
    "Chi phí",
    "Doanh thu",
    "Lợi nhuận",
)


@dataclass(frozen=True)
class ExportFile:
    """A rendered export ready to be sent as a download."""

    filename: str
    content: str
    media_type: str = CSV_MEDIA_TYPE

    @property
    def content_bytes(self) -> bytes:
        return self.content.encode("utf-8")


def format_amount(value: Decimal | int | None) -> str:
    """Two-decimal text for an amount; None is written as 0.00."""
    return f"{round_amount(ZERO if value is None else value):.2f}"


def _write(headers: Sequence[str], rows: Iterable[Sequence[object]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def export_customer_report(report: CustomerReport) -> ExportFile:
    rows = [
        (
            row.key,
            row.label,
            row.bill_count,
            format_amount(row.revenue),
            format_amount(row.costs.invoiced),
            format_amount(row.costs.paid_on_behalf),
            format_amount(row.costs.no_invoice),
            format_amount(row.total_costs),
            format_amount(row.profit),
            format_amount(row.margin),
        )
        for row in report.rows
    ]
    return ExportFile(CUSTOMER_FILENAME, _write(CUSTOMER_HEADERS, rows))


def export_supplier_report(report: SupplierReport) -> ExportFile:
    rows: list[tuple] = [
        (
            row.key,
            row.label,
            ", ".join(row.cost_type_names),
            row.transaction_count,
            format_amount(row.costs.invoiced),
            format_amount(row.costs.paid_on_behalf),
            format_amount(row.costs.no_invoice),
            format_amount(row.total_costs),
            format_amount(row.average_cost),
            format_amount(row.percentage),
        )
        for row in report.rows
    ]
    totals = report.totals
    count = report.transaction_count
    rows.append(
        (
            "",
            SUMMARY_LABEL,
            "",
            count,
            format_amount(totals.invoiced),
            format_amount(totals.paid_on_behalf),
            format_amount(totals.no_invoice),
            format_amount(totals.total),
            format_amount(totals.total / count if count else ZERO),
            format_amount(Decimal(100) if report.rows else ZERO),
        )
    )
    return ExportFile(SUPPLIER_FILENAME, _write(SUPPLIER_HEADERS, rows))


def export_profit_loss_report(report: ProfitLossReport) -> ExportFile:
    rows: list[tuple] = [
        (
            period.label,
            period.bill_count,
            format_amount(period.revenue),
            format_amount(period.costs.invoiced),
            format_amount(period.costs.paid_on_behalf),
            format_amount(period.costs.no_invoice),
            format_amount(period.total_costs),
            format_amount(period.profit),
            format_amount(period.margin),
        )
        for period in report.periods
    ]
    summary = report.summary
    rows.append(
        (
            SUMMARY_LABEL,
            summary.bill_count,
            format_amount(summary.total_revenue),
            format_amount(summary.costs.invoiced),
            format_amount(summary.costs.paid_on_behalf),
            format_amount(summary.costs.no_invoice),
            format_amount(summary.total_costs),
            format_amount(summary.net_profit),
            format_amount(summary.profit_margin),
        )
    )
    return ExportFile(PROFIT_LOSS_FILENAME, _write(PROFIT_LOSS_HEADERS, rows))


def _detail_cells(row: DetailRow) -> tuple:
    is_total = row.kind in (DetailRowKind.BILL_TOTAL, DetailRowKind.GRAND_TOTAL)
    return (
        row.label if is_total else row.sequence,
        "" if is_total else row.bill_no,
        row.bill_date.isoformat() if row.bill_date and not is_total else "",
        "" if is_total else row.customer_name or "",
        "" if is_total else row.invoice_no or "",
        "" if is_total or row.package_count is None else row.package_count,
        "" if is_total else row.goods_type or "",
        row.supplier_name or "",
        row.cost_type_name or "",
        row.category.label if row.category else "",
        format_amount(row.cost_amount),
        format_amount(row.revenue),
        format_amount(row.profit),
    )


def bill_detail_filename(start: date | None, end: date | None) -> str:
    if start is None or end is None:
        return "bao_cao_chi_tiet_hoa_don.csv"
    return f"bao_cao_chi_tiet_hoa_don_{start.isoformat()}_{end.isoformat()}.csv"


def export_bill_detail_report(report: BillDetailReport) -> ExportFile:
    metadata = report.metadata
    return ExportFile(
        bill_detail_filename(metadata.period_start, metadata.period_end),
        _write(BILL_DETAIL_HEADERS, (_detail_cells(row) for row in report.detail.rows)),
    )
