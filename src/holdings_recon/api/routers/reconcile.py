"""Reconciliation trigger endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from holdings_recon.api.deps import get_reconciliation_service
from holdings_recon.api.schemas import (
    BatchReconcileRequest,
    BatchReconcileResponse,
    ReconciliationReportResponse,
)
from holdings_recon.domain.models import EventSourceKind
from holdings_recon.services import ReconciliationService

router = APIRouter(prefix="/reconcile", tags=["reconcile"])


@router.post("/wallets/{wallet_address}", response_model=ReconciliationReportResponse)
def reconcile_wallet(
    wallet_address: str,
    dry_run: bool = Query(False, description="Compute the repair plan without writing"),
    source: Optional[EventSourceKind] = Query(None, description="ledger or mirror"),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ReconciliationReportResponse:
    """Reconcile one wallet's cached holdings against the ledger."""
    report = service.reconcile_wallet(wallet_address, dry_run=dry_run, source=source)
    return ReconciliationReportResponse.from_report(report)


@router.post("/batch", response_model=BatchReconcileResponse)
def reconcile_batch(
    data: BatchReconcileRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> BatchReconcileResponse:
    """Reconcile several wallets in parallel."""
    reports = service.reconcile_wallets(data.wallets, dry_run=data.dry_run, source=data.source)
    return BatchReconcileResponse(
        reports=[ReconciliationReportResponse.from_report(r) for r in reports],
        count=len(reports),
        failed=sum(1 for r in reports if r.failed),
    )
