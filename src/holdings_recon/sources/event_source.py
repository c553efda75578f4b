"""Event source protocol."""

from typing import Any, Iterable, Iterator, Optional, Protocol

from holdings_recon.domain.models import EventKind, EventSourceKind


class EventSource(Protocol):
    """
    Protocol for anything that can produce ownership/lock events.

    Implementations page through their backend lazily and yield lists of raw
    payloads in the common wire shape (asset_id, wallet_address, event_type,
    block_height, block_timestamp). Payloads are not validated here.
    Connection and auth failures raise SourceUnavailable; a failed page is
    never resumed mid-page.
    """

    kind: EventSourceKind

    def fetch_wallet_pages(
        self,
        wallet_address: str,
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        """Yield pages of raw events involving a wallet."""
        ...

    def fetch_asset_pages(
        self,
        asset_ids: list[str],
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        """Yield pages of raw events for a set of asset ids, any wallet."""
        ...


def chunked(items: list[str], size: int) -> Iterator[list[str]]:
    """Split a list into consecutive chunks of at most size items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]
