"""Service layer - reconciliation pipeline stages and orchestration."""

from holdings_recon.services.event_source_adapter import EventSourceAdapter, EventStream
from holdings_recon.services.state_resolver import StateResolver
from holdings_recon.services.drift_detector import DriftDetector
from holdings_recon.services.repair_executor import RepairExecutor, RepairOperation
from holdings_recon.services.reconciliation_service import ReconciliationService, RunDeadline

__all__ = [
    "EventSourceAdapter",
    "EventStream",
    "StateResolver",
    "DriftDetector",
    "RepairExecutor",
    "RepairOperation",
    "ReconciliationService",
    "RunDeadline",
]
