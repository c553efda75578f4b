"""Ledger event domain models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from holdings_recon.domain.models.enums import EventKind, EventSourceKind


@dataclass(frozen=True)
class LedgerEvent:
    """
    One immutable ownership or lock fact from the ledger.

    Two events for the same asset should never share a block height, but
    consumers must tolerate it.
    """

    asset_id: str
    wallet_address: str
    kind: EventKind
    block_height: int
    observed_at: datetime
    source: EventSourceKind = field(default=EventSourceKind.LEDGER, compare=False)

    @property
    def order_key(self) -> tuple[int, str, str]:
        """Sort key: block height, then kind identifier, then wallet as tie-breaks."""
        return (self.block_height, self.kind.value, self.wallet_address)


@dataclass
class SkippedEvent:
    """A raw payload that could not be decoded, kept for manual review."""

    source: EventSourceKind
    reason: str
    payload: Optional[Any] = None
