"""Drift classification result."""

from dataclasses import dataclass
from typing import Optional

from holdings_recon.domain.models.enums import DriftClassification, RepairAction
from holdings_recon.domain.models.holding import CachedHolding, ResolvedHoldingState


@dataclass(frozen=True)
class DriftRecord:
    """
    Classification of one asset for one wallet, produced per run.

    Consumed immediately by the repair executor; never persisted.
    """

    asset_id: str
    classification: DriftClassification
    cached_state: Optional[CachedHolding] = None
    resolved_state: Optional[ResolvedHoldingState] = None
    timestamp_stale: bool = False

    @property
    def action(self) -> RepairAction:
        """Row operation that brings the cache in line with the ledger."""
        if self.classification == DriftClassification.MISSING:
            return RepairAction.INSERT
        if self.classification == DriftClassification.GHOST:
            if self.resolved_state is not None and self.resolved_state.is_owned:
                return RepairAction.UPDATE
            return RepairAction.DELETE
        if self.timestamp_stale:
            return RepairAction.UPDATE
        return RepairAction.NONE
