"""Holding models: the persisted cache row and the ledger-derived state."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class CachedHolding:
    """
    Row of the denormalized holdings cache, keyed by (wallet_address, asset_id).

    A row exists only while the wallet is believed to hold the asset.
    last_synced_at is observability only; it is stamped on every write.
    """

    wallet_address: str
    asset_id: str
    is_locked: bool = False
    last_event_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = field(default=None)


@dataclass(frozen=True)
class ResolvedHoldingState:
    """
    Authoritative state of one asset derived from ledger events.

    Computed fresh on every run. When resolved for a wallet, is_owned means
    that wallet currently holds the asset.
    """

    asset_id: str
    wallet_address: Optional[str]
    is_owned: bool
    is_locked: bool = False
    as_of: Optional[datetime] = None
