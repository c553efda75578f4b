"""Holdings cache repository protocol."""

from typing import Protocol, Optional

from holdings_recon.domain.models import CachedHolding


class HoldingsRepository(Protocol):
    """
    Interface for the wallet holdings cache.

    The cache is shared with other writers; implementations must use keyed
    insert-or-update and keyed deletes, never table-wide overwrites.
    """

    def list_holdings(self, wallet_address: str) -> list[CachedHolding]:
        """Get all cached holdings for a wallet."""
        ...

    def get_holding(self, wallet_address: str, asset_id: str) -> Optional[CachedHolding]:
        """Get one cached holding by primary key."""
        ...

    def list_wallets(self) -> list[str]:
        """List every wallet address with at least one cached holding."""
        ...

    def apply_batch(
        self,
        wallet_address: str,
        upserts: list[CachedHolding],
        deletes: list[str],
    ) -> None:
        """
        Apply upserts and deletes for one wallet as a single atomic operation.

        Raises CacheWriteFailure after rolling back.
        """
        ...

    def close(self) -> None:
        """Release the underlying connection or session."""
        ...
