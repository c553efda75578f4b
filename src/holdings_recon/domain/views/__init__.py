"""View models for service outputs."""

from holdings_recon.domain.views.report import RepairSummary, ReconciliationReport

__all__ = [
    "RepairSummary",
    "ReconciliationReport",
]
