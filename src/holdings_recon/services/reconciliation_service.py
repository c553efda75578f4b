"""Reconciliation orchestrator: fetch, resolve, diff and repair per wallet."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from holdings_recon.core.exceptions import AppError, PartialRepairError, RunTimeout, ValidationError
from holdings_recon.core.retry import RetryPolicy
from holdings_recon.domain.models import (
    ALL_EVENT_KINDS,
    CachedHolding,
    DriftClassification,
    DriftRecord,
    EventKind,
    EventSourceKind,
    LedgerEvent,
    RunStage,
    RunStatus,
    SkippedEvent,
)
from holdings_recon.domain.views import ReconciliationReport
from holdings_recon.repositories.protocols import HoldingsRepository
from holdings_recon.services.drift_detector import DriftDetector
from holdings_recon.services.event_source_adapter import EventSourceAdapter, EventStream
from holdings_recon.services.repair_executor import DEFAULT_BATCH_SIZE, RepairExecutor
from holdings_recon.services.state_resolver import StateResolver

logger = logging.getLogger(__name__)


class RunDeadline:
    """Run-level time budget, checked at every I/O boundary."""

    def __init__(
        self,
        wallet_address: str,
        timeout_seconds: Optional[float],
        clock: Callable[[], float] = time.monotonic,
    ):
        self._wallet_address = wallet_address
        self._timeout = timeout_seconds
        self._clock = clock
        self._expires_at = clock() + timeout_seconds if timeout_seconds else None

    def check(self) -> None:
        """Raise RunTimeout once the budget is spent."""
        if self._expires_at is not None and self._clock() >= self._expires_at:
            raise RunTimeout(self._wallet_address, self._timeout)

    def check_sleep(self, delay: float) -> None:
        """Raise RunTimeout if sleeping for delay would overrun the budget."""
        if self._expires_at is not None and self._clock() + delay >= self._expires_at:
            raise RunTimeout(self._wallet_address, self._timeout)


class ReconciliationService:
    """
    Drives reconciliation runs: fetch -> resolve -> diff -> repair.

    Stages of one run are strictly sequential. Runs for different wallets
    touch disjoint cache rows and run in parallel, bounded by
    max_concurrency, each with its own repository from repository_factory.
    This is the only component that knows the retry policy.
    """

    def __init__(
        self,
        event_adapter: EventSourceAdapter,
        repository_factory: Callable[[], HoldingsRepository],
        retry_policy: Optional[RetryPolicy] = None,
        resolver: Optional[StateResolver] = None,
        detector: Optional[DriftDetector] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_concurrency: int = 4,
        run_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event_adapter = event_adapter
        self._repository_factory = repository_factory
        self._retry_policy = retry_policy or RetryPolicy()
        self._resolver = resolver or StateResolver()
        self._detector = detector or DriftDetector()
        self._batch_size = batch_size
        self._max_concurrency = max(1, max_concurrency)
        self._run_timeout = run_timeout_seconds
        self._clock = clock

    def reconcile_wallet(
        self,
        wallet_address: str,
        dry_run: bool = False,
        source: Optional[EventSourceKind] = None,
    ) -> ReconciliationReport:
        """
        Run one full reconciliation for a wallet.

        Source, timeout and repair failures come back as a report with
        status Failed or PartiallyRepaired naming the last completed stage.
        """
        wallet = self._normalize_wallet(wallet_address)
        self._check_source(source)
        repository = self._repository_factory()
        try:
            return self._run(repository, wallet, dry_run, source)
        finally:
            repository.close()

    def reconcile_wallets(
        self,
        wallet_addresses: Iterable[str],
        dry_run: bool = False,
        source: Optional[EventSourceKind] = None,
    ) -> list[ReconciliationReport]:
        """Reconcile several wallets in parallel; reports follow input order."""
        wallets = list(dict.fromkeys(self._normalize_wallet(w) for w in wallet_addresses))
        self._check_source(source)
        if not wallets:
            return []

        workers = min(self._max_concurrency, len(wallets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="recon") as pool:
            futures = [
                pool.submit(self._reconcile_isolated, wallet, dry_run, source)
                for wallet in wallets
            ]
            reports = [f.result() for f in futures]

        failed = [r.wallet_address for r in reports if r.failed]
        logger.info(
            "Reconciled %d wallets (%d not fully repaired)%s",
            len(reports),
            len(failed),
            f": {', '.join(failed)}" if failed else "",
        )
        return reports

    def reconcile_all(
        self,
        dry_run: bool = False,
        source: Optional[EventSourceKind] = None,
    ) -> list[ReconciliationReport]:
        """Reconcile every wallet that currently has rows in the cache."""
        repository = self._repository_factory()
        try:
            wallets = repository.list_wallets()
        finally:
            repository.close()
        logger.info("Reconciling all %d cached wallets", len(wallets))
        return self.reconcile_wallets(wallets, dry_run=dry_run, source=source)

    def _reconcile_isolated(
        self,
        wallet: str,
        dry_run: bool,
        source: Optional[EventSourceKind],
    ) -> ReconciliationReport:
        # One wallet's unexpected failure must not take down the batch
        try:
            return self.reconcile_wallet(wallet, dry_run=dry_run, source=source)
        except Exception as exc:
            logger.exception("Reconciliation of %s crashed", wallet)
            return ReconciliationReport(
                wallet_address=wallet,
                status=RunStatus.FAILED,
                dry_run=dry_run,
                error=f"{type(exc).__name__}: {exc}",
            )

    def _run(
        self,
        repository: HoldingsRepository,
        wallet: str,
        dry_run: bool,
        source: Optional[EventSourceKind],
    ) -> ReconciliationReport:
        started = self._clock()
        deadline = RunDeadline(wallet, self._run_timeout, self._clock)
        report = ReconciliationReport(wallet_address=wallet, dry_run=dry_run)
        stage: Optional[RunStage] = None

        try:
            cached = repository.list_holdings(wallet)
            events, skipped = self._fetch(wallet, cached, source, deadline)
            report.skipped_events = len(skipped)
            stage = RunStage.FETCH

            resolved = self._resolver.resolve_wallet(
                events, wallet, asset_ids=[c.asset_id for c in cached]
            )
            stage = RunStage.RESOLVE
            deadline.check()

            records = self._detector.diff(cached, resolved.values())
            self._tally(report, records)
            stage = RunStage.DIFF

            executor = RepairExecutor(repository, batch_size=self._batch_size)
            report.summary = executor.apply(
                wallet, records, dry_run=dry_run, checkpoint=deadline.check
            )
            stage = RunStage.REPAIR
        except PartialRepairError as exc:
            report.status = RunStatus.PARTIALLY_REPAIRED
            report.summary = exc.summary
            report.error = exc.message
        except AppError as exc:
            report.status = RunStatus.FAILED
            report.error = exc.message
        finally:
            report.last_completed_stage = stage
            report.duration_ms = int((self._clock() - started) * 1000)

        self._log_report(report)
        return report

    def _fetch(
        self,
        wallet: str,
        cached: list[CachedHolding],
        source: Optional[EventSourceKind],
        deadline: RunDeadline,
    ) -> tuple[list[LedgerEvent], list[SkippedEvent]]:
        """
        Collect every event needed to resolve the wallet's holdings.

        Wallet events find what it acquired; asset events for everything it
        holds or once received reveal transfers to other wallets.
        """
        kinds = ALL_EVENT_KINDS

        wallet_events, wallet_skipped = self._retry_policy.call(
            lambda: self._drain(
                self._event_adapter.fetch_events(wallet, kinds, source=source),
                deadline,
            ),
            description=f"Fetching events for wallet {wallet}",
            before_sleep=deadline.check_sleep,
        )

        candidate_ids = {c.asset_id for c in cached}
        candidate_ids.update(
            e.asset_id for e in wallet_events if e.kind == EventKind.DEPOSIT
        )
        asset_events, asset_skipped = self._retry_policy.call(
            lambda: self._drain(
                self._event_adapter.fetch_events_for_assets(
                    candidate_ids, kinds, source=source
                ),
                deadline,
            ),
            description=f"Fetching events for {len(candidate_ids)} assets of {wallet}",
            before_sleep=deadline.check_sleep,
        )

        events = sorted(
            set(wallet_events) | set(asset_events),
            key=lambda e: (e.asset_id, e.order_key),
        )
        skipped = list({repr(s.payload): s for s in wallet_skipped + asset_skipped}.values())
        if skipped:
            logger.warning(
                "%d malformed events skipped for %s; payloads: %r",
                len(skipped),
                wallet,
                [s.payload for s in skipped],
            )
        return events, skipped

    @staticmethod
    def _drain(stream: EventStream, deadline: RunDeadline) -> tuple[list[LedgerEvent], list[SkippedEvent]]:
        events = []
        deadline.check()
        for event in stream:
            deadline.check()
            events.append(event)
        return events, stream.skipped

    @staticmethod
    def _tally(report: ReconciliationReport, records: list[DriftRecord]) -> None:
        for record in records:
            if record.classification == DriftClassification.GHOST:
                report.ghosts.append(record.asset_id)
            elif record.classification == DriftClassification.MISSING:
                report.missing.append(record.asset_id)
            else:
                report.consistent += 1

    @staticmethod
    def _normalize_wallet(wallet_address: str) -> str:
        wallet = (wallet_address or "").strip().lower()
        if not wallet:
            raise ValidationError("wallet_address must not be empty")
        return wallet

    def _check_source(self, source: Optional[EventSourceKind]) -> None:
        if source is None:
            return
        kind = EventSourceKind(source)
        if kind not in self._event_adapter.available_sources:
            raise ValidationError(f"Event source '{kind.value}' is not configured")

    @staticmethod
    def _log_report(report: ReconciliationReport) -> None:
        level = logging.INFO if report.status == RunStatus.SUCCEEDED else logging.ERROR
        logger.log(
            level,
            "%s%s %s after stage %s in %dms: consistent=%d ghosts=%d missing=%d "
            "inserted=%d updated=%d deleted=%d skipped=%d samples=%s%s",
            "[dry-run] " if report.dry_run else "",
            report.wallet_address,
            report.status.value,
            report.last_completed_stage.value if report.last_completed_stage else "none",
            report.duration_ms,
            report.consistent,
            len(report.ghosts),
            len(report.missing),
            report.summary.inserted,
            report.summary.updated,
            report.summary.deleted,
            report.skipped_events,
            report.sample_ids(),
            f" error={report.error}" if report.error else "",
        )
