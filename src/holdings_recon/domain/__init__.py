"""Domain layer - pure models with no external dependencies."""

from holdings_recon.domain.models import (
    EventKind,
    EventSourceKind,
    DriftClassification,
    RepairAction,
    RunStage,
    RunStatus,
    LedgerEvent,
    SkippedEvent,
    CachedHolding,
    ResolvedHoldingState,
    DriftRecord,
)
from holdings_recon.domain.views import RepairSummary, ReconciliationReport

__all__ = [
    "EventKind",
    "EventSourceKind",
    "DriftClassification",
    "RepairAction",
    "RunStage",
    "RunStatus",
    "LedgerEvent",
    "SkippedEvent",
    "CachedHolding",
    "ResolvedHoldingState",
    "DriftRecord",
    "RepairSummary",
    "ReconciliationReport",
]
