"""Domain models package."""

from holdings_recon.domain.models.enums import (
    EventKind,
    ALL_EVENT_KINDS,
    EventSourceKind,
    DriftClassification,
    RepairAction,
    RunStage,
    RunStatus,
)
from holdings_recon.domain.models.event import LedgerEvent, SkippedEvent
from holdings_recon.domain.models.holding import CachedHolding, ResolvedHoldingState
from holdings_recon.domain.models.drift import DriftRecord

__all__ = [
    "EventKind",
    "ALL_EVENT_KINDS",
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
]
