"""State resolver: collapses ledger events into current holding state."""

import logging
from collections import defaultdict
from typing import Iterable, Optional

from holdings_recon.core.exceptions import ResolutionAmbiguous
from holdings_recon.domain.models import EventKind, LedgerEvent, ResolvedHoldingState

logger = logging.getLogger(__name__)


class StateResolver:
    """
    Derive authoritative holding state from ledger events (last event wins).

    Rules per asset:
    - The latest Deposit names the holder. A Deposit sharing its block with
      another wallet's Lock is a custody move into the locker and is
      ignored. No Deposit at all means no owner.
    - A Withdraw from the holder ordered after that Deposit disowns the asset,
      unless a Lock shares its block (custody move into the locker).
    - Lock state is the latest Lock/Unlock at or after the latest Deposit's
      height; earlier lock events belong to a previous acquisition and are
      ignored. No such event means unlocked.
    - Same-height ties are broken by the lexicographically greatest kind
      identifier (Withdraw > Unlock > Lock > Deposit), then wallet, and logged.
    """

    def resolve(
        self,
        events: Iterable[LedgerEvent],
        asset_id: str,
        wallet_address: Optional[str] = None,
    ) -> ResolvedHoldingState:
        """
        Resolve one asset's state from a stream that may contain other assets.

        With wallet_address, ownership is projected onto that wallet.
        """
        partition = [e for e in events if e.asset_id == asset_id]
        return self._resolve_partition(asset_id, partition, wallet_address)

    def resolve_wallet(
        self,
        events: Iterable[LedgerEvent],
        wallet_address: str,
        asset_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, ResolvedHoldingState]:
        """
        Resolve every asset in the stream (plus asset_ids) for one wallet.

        Assets in asset_ids with no events resolve as not owned.
        """
        wallet = wallet_address.lower()
        partitions: dict[str, list[LedgerEvent]] = defaultdict(list)
        for event in events:
            partitions[event.asset_id].append(event)

        wanted = set(partitions)
        if asset_ids is not None:
            wanted.update(asset_ids)

        return {
            asset_id: self._resolve_partition(asset_id, partitions.get(asset_id, []), wallet)
            for asset_id in sorted(wanted)
        }

    def _resolve_partition(
        self,
        asset_id: str,
        events: list[LedgerEvent],
        wallet_address: Optional[str],
    ) -> ResolvedHoldingState:
        wallet = wallet_address.lower() if wallet_address else None

        # Locking moves the asset into locker custody: the owner's Withdraw and
        # the locker's Deposit share a block with the owner's Lock
        locks = [e for e in events if e.kind == EventKind.LOCK]
        lock_heights = {e.block_height for e in locks}
        deposits = [
            e
            for e in events
            if e.kind == EventKind.DEPOSIT and not self._is_custody_deposit(e, locks)
        ]
        if not deposits:
            return ResolvedHoldingState(asset_id=asset_id, wallet_address=wallet, is_owned=False)

        latest_deposit = self._latest(asset_id, deposits)
        holder = latest_deposit.wallet_address

        removals = [
            e
            for e in events
            if e.kind == EventKind.WITHDRAW
            and e.wallet_address == holder
            and e.order_key > latest_deposit.order_key
            and e.block_height not in lock_heights
        ]
        if removals:
            removal = self._latest(asset_id, removals + [latest_deposit])
            return ResolvedHoldingState(
                asset_id=asset_id,
                wallet_address=wallet,
                is_owned=False,
                as_of=removal.observed_at,
            )

        if wallet is not None and holder != wallet:
            return ResolvedHoldingState(
                asset_id=asset_id,
                wallet_address=wallet,
                is_owned=False,
                as_of=latest_deposit.observed_at,
            )

        lock_events = [
            e
            for e in events
            if e.kind.is_lock_state and e.block_height >= latest_deposit.block_height
        ]
        is_locked = False
        as_of = latest_deposit.observed_at
        if lock_events:
            latest_lock = self._latest(asset_id, lock_events)
            is_locked = latest_lock.kind == EventKind.LOCK
            as_of = latest_lock.observed_at

        return ResolvedHoldingState(
            asset_id=asset_id,
            wallet_address=holder,
            is_owned=True,
            is_locked=is_locked,
            as_of=as_of,
        )

    @staticmethod
    def _is_custody_deposit(deposit: LedgerEvent, locks: list[LedgerEvent]) -> bool:
        return any(
            lock.block_height == deposit.block_height
            and lock.wallet_address != deposit.wallet_address
            for lock in locks
        )

    @staticmethod
    def _latest(asset_id: str, candidates: list[LedgerEvent]) -> LedgerEvent:
        """Pick the winning event, warning when the tie-break had to decide."""
        winner = max(candidates, key=lambda e: e.order_key)
        rivals = {
            (e.kind.value, e.wallet_address)
            for e in candidates
            if e.block_height == winner.block_height
        }
        if len(rivals) > 1:
            ambiguity = ResolutionAmbiguous(
                asset_id, winner.block_height, sorted({kind for kind, _ in rivals})
            )
            logger.warning(
                "%s; tie-break chose %s for %s",
                ambiguity.message,
                winner.kind.value,
                winner.wallet_address,
            )
        return winner
