"""Pydantic schemas for reconciliation endpoints."""

from typing import Optional

from pydantic import BaseModel, Field

from holdings_recon.domain.models import EventSourceKind, RunStage, RunStatus
from holdings_recon.domain.views import ReconciliationReport


class RepairSummaryResponse(BaseModel):
    """Response schema for the repair counts of one run."""

    model_config = {"from_attributes": True}

    inserted: int
    updated: int
    deleted: int
    batches_applied: int
    batches_failed: int


class ReconciliationReportResponse(BaseModel):
    """Response schema for one wallet's reconciliation report."""

    model_config = {"from_attributes": True}

    wallet_address: str
    status: RunStatus
    consistent: int
    ghosts: list[str]
    missing: list[str]
    duration_ms: int
    summary: RepairSummaryResponse
    skipped_events: int
    dry_run: bool
    last_completed_stage: Optional[RunStage] = None
    error: Optional[str] = None

    @classmethod
    def from_report(cls, report: ReconciliationReport) -> "ReconciliationReportResponse":
        return cls.model_validate(report)


class BatchReconcileRequest(BaseModel):
    """Request schema for reconciling several wallets."""

    wallets: list[str] = Field(..., min_length=1, max_length=1000, description="Wallet addresses")
    dry_run: bool = Field(default=False, description="Compute the repair plan without writing")
    source: Optional[EventSourceKind] = Field(default=None, description="Event source override")


class BatchReconcileResponse(BaseModel):
    """Response schema for a batch reconciliation."""

    reports: list[ReconciliationReportResponse]
    count: int
    failed: int
