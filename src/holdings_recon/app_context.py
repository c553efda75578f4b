"""Application context for in-process service management.

Builds engines, event sources and the reconciliation service from one
Settings object. Used by the FastAPI app and the batch script alike.
"""

from typing import Optional

from sqlalchemy import Engine

from holdings_recon.config.settings import Settings, load_settings
from holdings_recon.core.retry import RetryPolicy
from holdings_recon.domain.models import EventSourceKind
from holdings_recon.repositories.sqlalchemy import (
    SqlAlchemyHoldingsRepository,
    create_db_engine,
    create_session_factory,
    init_db,
)
from holdings_recon.services import EventSourceAdapter, ReconciliationService
from holdings_recon.sources import AnalyticalMirrorSource, EventSource, LedgerNodeSource


class ReconContext:
    """
    Wiring for one configured reconciliation deployment.

    Everything hangs off the Settings passed in; two contexts with different
    settings never share connections.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sources: Optional[dict[EventSourceKind, EventSource]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the context.

        Args:
            settings: Configuration. Loaded from the environment if not provided.
            sources: Event sources to use instead of the configured ones.
            retry_policy: Retry policy to use instead of the configured one.
        """
        self.settings = settings or load_settings()

        self.engine: Engine = create_db_engine(self.settings.database_url)
        init_db(self.engine)
        self.session_factory = create_session_factory(self.engine)

        self._mirror_engine: Optional[Engine] = None
        self.sources = sources if sources is not None else self._build_sources()
        self.adapter = EventSourceAdapter(
            self.sources,
            default_source=self._default_source(),
            locker_address=self.settings.locker_address,
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.retry_max_attempts,
            base_delay=self.settings.retry_base_delay_seconds,
            max_delay=self.settings.retry_max_delay_seconds,
            jitter=self.settings.retry_jitter_seconds,
        )
        self.reconciliation = ReconciliationService(
            event_adapter=self.adapter,
            repository_factory=self.holdings_repo,
            retry_policy=self.retry_policy,
            batch_size=self.settings.repair_batch_size,
            max_concurrency=self.settings.max_concurrency,
            run_timeout_seconds=self.settings.run_timeout_seconds,
        )

    def holdings_repo(self) -> SqlAlchemyHoldingsRepository:
        """Open a holdings repository on a fresh session (caller closes it)."""
        return SqlAlchemyHoldingsRepository(self.session_factory())

    def _build_sources(self) -> dict[EventSourceKind, EventSource]:
        settings = self.settings
        sources: dict[EventSourceKind, EventSource] = {
            EventSourceKind.LEDGER: LedgerNodeSource(
                base_url=settings.ledger_api_base,
                api_key=settings.ledger_api_key,
                api_key_header=settings.ledger_api_key_header,
                timeout_seconds=settings.ledger_request_timeout_seconds,
                page_size=settings.ledger_page_size,
                asset_chunk_size=settings.asset_query_chunk_size,
            )
        }
        if settings.mirror_database_url:
            self._mirror_engine = create_db_engine(settings.mirror_database_url)
            sources[EventSourceKind.MIRROR] = AnalyticalMirrorSource(
                self._mirror_engine,
                table_name=settings.mirror_events_table,
                page_size=settings.mirror_page_size,
                asset_chunk_size=settings.asset_query_chunk_size,
            )
        return sources

    def _default_source(self) -> EventSourceKind:
        preferred = self.settings.default_event_source
        if preferred in self.sources:
            return preferred
        # Fall back to whatever is configured
        return next(iter(self.sources))

    def close(self) -> None:
        """Clean up resources."""
        for source in self.sources.values():
            close = getattr(source, "close", None)
            if close is not None:
                close()
        if self._mirror_engine is not None:
            self._mirror_engine.dispose()
        self.engine.dispose()
