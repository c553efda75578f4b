"""Event source adapter: uniform LedgerEvent streams from the ledger or its mirror."""

import logging
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from holdings_recon.core.exceptions import MalformedEvent, ValidationError
from holdings_recon.domain.models import (
    ALL_EVENT_KINDS,
    EventKind,
    EventSourceKind,
    LedgerEvent,
    SkippedEvent,
)
from holdings_recon.sources.event_source import EventSource
from holdings_recon.sources.payload import decode_event

logger = logging.getLogger(__name__)


class EventStream:
    """
    Lazily-paginated, single-use sequence of decoded ledger events.

    Undecodable payloads are skipped and recorded in ``skipped`` as the
    stream is consumed. A SourceUnavailable raised mid-iteration means the
    fetch has to be started again from the beginning.
    """

    def __init__(
        self,
        pages: Callable[[], Iterator[list[Any]]],
        source: EventSourceKind,
        event_kinds: frozenset[EventKind],
        since_height: Optional[int] = None,
        locker_address: Optional[str] = None,
        description: str = "events",
    ):
        self._pages = pages
        self._source = source
        self._event_kinds = event_kinds
        self._since_height = since_height
        self._locker_address = locker_address
        self._description = description
        self._consumed = False
        self.skipped: list[SkippedEvent] = []
        self.custody_dropped = 0

    @property
    def source(self) -> EventSourceKind:
        return self._source

    def __iter__(self) -> Iterator[LedgerEvent]:
        if self._consumed:
            raise RuntimeError(f"Event stream for {self._description} was already consumed")
        self._consumed = True

        for page in self._pages():
            for payload in page:
                try:
                    event = decode_event(payload, self._source)
                except MalformedEvent as exc:
                    self.skipped.append(
                        SkippedEvent(source=self._source, reason=exc.reason, payload=payload)
                    )
                    logger.warning(
                        "Skipping malformed %s event for %s: %s",
                        self._source.value,
                        self._description,
                        exc.reason,
                    )
                    continue

                if event.kind not in self._event_kinds:
                    continue
                if self._since_height is not None and event.block_height < self._since_height:
                    continue
                if self._is_custody_transfer(event):
                    self.custody_dropped += 1
                    continue
                yield event

        if self.custody_dropped:
            logger.info(
                "Dropped %d locker custody transfers from %s",
                self.custody_dropped,
                self._description,
            )

    def _is_custody_transfer(self, event: LedgerEvent) -> bool:
        # Locking moves the asset into the locker contract; the owner is unchanged
        return (
            self._locker_address is not None
            and event.kind.is_ownership
            and event.wallet_address == self._locker_address
        )


class EventSourceAdapter:
    """
    Dispatches event queries to the live ledger or the analytical mirror.

    Downstream components only ever see LedgerEvent, whatever the origin.
    """

    def __init__(
        self,
        sources: Mapping[EventSourceKind, EventSource],
        default_source: EventSourceKind = EventSourceKind.LEDGER,
        locker_address: Optional[str] = None,
    ):
        if not sources:
            raise ValueError("At least one event source is required")
        self._sources = dict(sources)
        self._default_source = default_source
        self._locker_address = locker_address.lower() if locker_address else None

    @property
    def available_sources(self) -> list[EventSourceKind]:
        return sorted(self._sources, key=lambda k: k.value)

    def fetch_events(
        self,
        wallet_address: str,
        event_kinds: Iterable[EventKind] = ALL_EVENT_KINDS,
        since_height: Optional[int] = None,
        source: Optional[EventSourceKind] = None,
    ) -> EventStream:
        """Return the event stream for every event involving a wallet."""
        backend = self._resolve_source(source)
        kinds = frozenset(event_kinds)
        wallet = wallet_address.lower()
        return EventStream(
            pages=lambda: backend.fetch_wallet_pages(wallet, kinds, since_height),
            source=backend.kind,
            event_kinds=kinds,
            since_height=since_height,
            locker_address=self._locker_address,
            description=f"wallet {wallet}",
        )

    def fetch_events_for_assets(
        self,
        asset_ids: Iterable[str],
        event_kinds: Iterable[EventKind] = ALL_EVENT_KINDS,
        since_height: Optional[int] = None,
        source: Optional[EventSourceKind] = None,
    ) -> EventStream:
        """Return the event stream for a set of assets, whichever wallet holds them."""
        backend = self._resolve_source(source)
        kinds = frozenset(event_kinds)
        ids = sorted(set(asset_ids))

        def pages() -> Iterator[list[Any]]:
            if not ids:
                return iter(())
            return backend.fetch_asset_pages(ids, kinds, since_height)

        return EventStream(
            pages=pages,
            source=backend.kind,
            event_kinds=kinds,
            since_height=since_height,
            locker_address=self._locker_address,
            description=f"{len(ids)} assets",
        )

    def _resolve_source(self, source: Optional[EventSourceKind]) -> EventSource:
        kind = EventSourceKind(source) if source is not None else self._default_source
        backend = self._sources.get(kind)
        if backend is None:
            raise ValidationError(f"Event source '{kind.value}' is not configured")
        return backend
