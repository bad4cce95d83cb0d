"""
Billing services: report orchestration, resilient live queries, CSV export
and classification maintenance.
"""

from billing_services.attribute_maintenance import (
    backfill_legacy_tags,
    ensure_classification_attributes,
)
from billing_services.export import (
    ExportFile,
    export_bill_detail_report,
    export_customer_report,
    export_profit_loss_report,
    export_supplier_report,
)
from billing_services.fallback import SampleDataset, build_sample_dataset
from billing_services.models import (
    BillDetailReport,
    BillListReport,
    BillReport,
    CustomerReport,
    DashboardSummary,
    ProfitLossReport,
    ReportMetadata,
    ReportType,
    SupplierReport,
    render_to_dict,
)
from billing_services.report_service import BillingReportService
from billing_services.resilient import (
    DataSource,
    FallbackReason,
    ResilientQueryExecutor,
    ResilientResult,
    execute_with_fallback,
)
from billing_services.responses import error_response

__all__ = [
    "BillDetailReport",
    "BillListReport",
    "BillReport",
    "BillingReportService",
    "CustomerReport",
    "DashboardSummary",
    "DataSource",
    "ExportFile",
    "FallbackReason",
    "ProfitLossReport",
    "ReportMetadata",
    "ReportType",
    "ResilientQueryExecutor",
    "ResilientResult",
    "SampleDataset",
    "SupplierReport",
    "backfill_legacy_tags",
    "build_sample_dataset",
    "ensure_classification_attributes",
    "error_response",
    "execute_with_fallback",
    "export_bill_detail_report",
    "export_customer_report",
    "export_profit_loss_report",
    "export_supplier_report",
    "render_to_dict",
]
