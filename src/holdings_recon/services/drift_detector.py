"""Drift detector: classify cache rows against resolved ledger state."""

from typing import Iterable, Optional

from holdings_recon.domain.models import (
    CachedHolding,
    DriftClassification,
    DriftRecord,
    ResolvedHoldingState,
)


class DriftDetector:
    """
    Compare a wallet's cached holdings with the resolver's output.

    Pure function of its inputs: no clock, no I/O. Records come back sorted
    by asset id.
    """

    def diff(
        self,
        cached: Iterable[CachedHolding],
        resolved: Iterable[ResolvedHoldingState],
    ) -> list[DriftRecord]:
        cached_by_id = {c.asset_id: c for c in cached}
        resolved_by_id = {r.asset_id: r for r in resolved}

        records = []
        for asset_id in sorted(cached_by_id.keys() | resolved_by_id.keys()):
            records.append(
                self._classify(asset_id, cached_by_id.get(asset_id), resolved_by_id.get(asset_id))
            )
        return records

    @staticmethod
    def _classify(
        asset_id: str,
        cached: Optional[CachedHolding],
        resolved: Optional[ResolvedHoldingState],
    ) -> DriftRecord:
        owned = resolved is not None and resolved.is_owned

        if cached is None:
            classification = DriftClassification.MISSING if owned else DriftClassification.CONSISTENT
            return DriftRecord(asset_id, classification, None, resolved)

        if not owned or cached.is_locked != resolved.is_locked:
            return DriftRecord(asset_id, DriftClassification.GHOST, cached, resolved)

        return DriftRecord(
            asset_id,
            DriftClassification.CONSISTENT,
            cached,
            resolved,
            timestamp_stale=cached.last_event_at != resolved.as_of,
        )
