"""Repair executor: converge the holdings cache on resolved ledger state."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from holdings_recon.core.exceptions import CacheWriteFailure, PartialRepairError
from holdings_recon.core.timezone import now_utc
from holdings_recon.domain.models import CachedHolding, DriftRecord, RepairAction
from holdings_recon.domain.views import RepairSummary
from holdings_recon.repositories.protocols import HoldingsRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 200


@dataclass(frozen=True)
class RepairOperation:
    """One planned row operation."""

    action: RepairAction
    asset_id: str
    holding: Optional[CachedHolding] = None


class RepairExecutor:
    """
    Apply the minimal upserts/deletes for one wallet in bounded batches.

    Each batch is atomic. Batches are independent: a failed batch is retried
    once, then the run stops with PartialRepairError and already committed
    batches stay in place. Re-running the reconciliation converges the rest.
    """

    def __init__(
        self,
        repository: HoldingsRepository,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = now_utc,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._repository = repository
        self._batch_size = batch_size
        self._clock = clock

    def plan(self, wallet_address: str, drift_records: Iterable[DriftRecord]) -> list[RepairOperation]:
        """Translate drift records into row operations, sorted by asset id."""
        synced_at = self._clock()
        operations = []
        for record in sorted(drift_records, key=lambda r: r.asset_id):
            action = record.action
            if action == RepairAction.NONE:
                continue
            if action == RepairAction.DELETE:
                operations.append(RepairOperation(action, record.asset_id))
                continue
            resolved = record.resolved_state
            operations.append(
                RepairOperation(
                    action,
                    record.asset_id,
                    CachedHolding(
                        wallet_address=wallet_address,
                        asset_id=record.asset_id,
                        is_locked=resolved.is_locked,
                        last_event_at=resolved.as_of,
                        last_synced_at=synced_at,
                    ),
                )
            )
        return operations

    def apply(
        self,
        wallet_address: str,
        drift_records: Iterable[DriftRecord],
        dry_run: bool = False,
        checkpoint: Optional[Callable[[], None]] = None,
    ) -> RepairSummary:
        """
        Repair the cache for one wallet.

        In dry-run the summary is computed from the plan and nothing is written.
        checkpoint runs before each batch and may raise to cancel the run.
        """
        operations = self.plan(wallet_address, drift_records)
        batches = [
            operations[i:i + self._batch_size]
            for i in range(0, len(operations), self._batch_size)
        ]
        summary = RepairSummary()

        if dry_run:
            for batch in batches:
                self._count(summary, batch)
            summary.batches_applied = len(batches)
            logger.info(
                "[dry-run] %s: would insert %d, update %d, delete %d in %d batches",
                wallet_address,
                summary.inserted,
                summary.updated,
                summary.deleted,
                len(batches),
            )
            return summary

        for index, batch in enumerate(batches, start=1):
            if checkpoint is not None:
                checkpoint()
            upserts = [op.holding for op in batch if op.holding is not None]
            deletes = [op.asset_id for op in batch if op.action == RepairAction.DELETE]
            try:
                self._write_with_retry(wallet_address, upserts, deletes, index, len(batches))
            except CacheWriteFailure as exc:
                summary.batches_failed += 1
                raise PartialRepairError(wallet_address, summary, exc) from exc
            self._count(summary, batch)
            summary.batches_applied += 1

        return summary

    def _write_with_retry(
        self,
        wallet_address: str,
        upserts: list[CachedHolding],
        deletes: list[str],
        index: int,
        total: int,
    ) -> None:
        try:
            self._repository.apply_batch(wallet_address, upserts, deletes)
        except CacheWriteFailure as exc:
            logger.warning(
                "Batch %d/%d for %s failed, retrying once: %s",
                index,
                total,
                wallet_address,
                exc.message,
            )
            self._repository.apply_batch(wallet_address, upserts, deletes)

    @staticmethod
    def _count(summary: RepairSummary, batch: list[RepairOperation]) -> None:
        for op in batch:
            if op.action == RepairAction.INSERT:
                summary.inserted += 1
            elif op.action == RepairAction.UPDATE:
                summary.updated += 1
            elif op.action == RepairAction.DELETE:
                summary.deleted += 1
