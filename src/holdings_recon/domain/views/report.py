"""View models for reconciliation outputs."""

from dataclasses import dataclass, field
from typing import Optional

from holdings_recon.domain.models.enums import RunStage, RunStatus


@dataclass
class RepairSummary:
    """Counts of row operations issued (or planned, in dry-run) for one run."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    batches_applied: int = 0
    batches_failed: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.deleted

    @property
    def is_empty(self) -> bool:
        return self.total == 0


@dataclass
class ReconciliationReport:
    """Structured result of one wallet's reconciliation run."""

    wallet_address: str
    status: RunStatus = RunStatus.SUCCEEDED
    consistent: int = 0
    ghosts: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    duration_ms: int = 0
    summary: RepairSummary = field(default_factory=RepairSummary)
    skipped_events: int = 0
    dry_run: bool = False
    last_completed_stage: Optional[RunStage] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status != RunStatus.SUCCEEDED

    def sample_ids(self, limit: int = 5) -> dict[str, list[str]]:
        """First few ghost and missing ids, for log lines and alerts."""
        return {
            "ghosts": self.ghosts[:limit],
            "missing": self.missing[:limit],
        }
