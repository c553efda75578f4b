"""Pydantic schemas for API request/response."""

from holdings_recon.api.schemas.reconcile import (
    RepairSummaryResponse,
    ReconciliationReportResponse,
    BatchReconcileRequest,
    BatchReconcileResponse,
)

__all__ = [
    "RepairSummaryResponse",
    "ReconciliationReportResponse",
    "BatchReconcileRequest",
    "BatchReconcileResponse",
]
