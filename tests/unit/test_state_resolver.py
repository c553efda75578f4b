"""
Unit tests for StateResolver.

Tests cover:
- Last-event-wins ownership and lock state
- Lock events preceding the latest deposit are ignored
- Same-height ties (deterministic, order independent, logged)
- Explicit withdraw evidence and transfers between wallets
- Wallet-scoped resolution
"""

import itertools
import logging

import pytest

from holdings_recon.domain.models import EventKind
from holdings_recon.services import StateResolver

from tests.conftest import LOCKER, WALLET, OTHER_WALLET, ledger_event, utc_at


D, W, L, U = EventKind.DEPOSIT, EventKind.WITHDRAW, EventKind.LOCK, EventKind.UNLOCK


@pytest.fixture
def resolver() -> StateResolver:
    return StateResolver()


# =============================================================================
# OWNERSHIP
# =============================================================================


class TestOwnership:
    """Tests for deriving the current holder."""

    def test_no_events_means_not_owned(self, resolver: StateResolver):
        """
        GIVEN no events for an asset
        WHEN I resolve it
        THEN it is not owned and has no timestamp
        """
        state = resolver.resolve([], "42")

        assert state.is_owned is False
        assert state.is_locked is False
        assert state.as_of is None

    def test_single_deposit_owns_unlocked(self, resolver: StateResolver):
        """
        GIVEN one Deposit into a wallet
        WHEN I resolve the asset
        THEN the wallet owns it, unlocked, as of the deposit
        """
        state = resolver.resolve([ledger_event("42", WALLET, D, 10)], "42")

        assert state.is_owned is True
        assert state.wallet_address == WALLET
        assert state.is_locked is False
        assert state.as_of == utc_at(10)

    def test_latest_deposit_names_holder(self, resolver: StateResolver):
        """
        GIVEN the asset moved from WALLET to OTHER_WALLET
        WHEN I resolve it for WALLET
        THEN WALLET does not own it
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 20),
            ledger_event("42", OTHER_WALLET, D, 20),
        ]

        mine = resolver.resolve(events, "42", wallet_address=WALLET)
        theirs = resolver.resolve(events, "42", wallet_address=OTHER_WALLET)

        assert mine.is_owned is False
        assert theirs.is_owned is True
        assert theirs.wallet_address == OTHER_WALLET

    def test_withdraw_after_deposit_disowns(self, resolver: StateResolver):
        """
        GIVEN Deposit then Withdraw by the same wallet and no new deposit
        WHEN I resolve the asset
        THEN it is not owned, as of the withdraw
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 15),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is False
        assert state.as_of == utc_at(15)

    def test_withdraw_before_redeposit_is_ignored(self, resolver: StateResolver):
        """
        GIVEN Deposit, Withdraw, then a second Deposit into the same wallet
        WHEN I resolve the asset
        THEN the wallet owns it again
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 15),
            ledger_event("42", WALLET, D, 30),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is True
        assert state.as_of == utc_at(30)

    def test_only_withdraw_means_not_owned(self, resolver: StateResolver):
        """
        GIVEN only a Withdraw event
        WHEN I resolve the asset
        THEN it is not owned
        """
        state = resolver.resolve([ledger_event("42", WALLET, W, 5)], "42")

        assert state.is_owned is False

    def test_other_assets_in_stream_are_ignored(self, resolver: StateResolver):
        """
        GIVEN a stream mixing two assets
        WHEN I resolve one of them
        THEN only its own events count
        """
        events = [
            ledger_event("1", WALLET, D, 10),
            ledger_event("2", WALLET, D, 11),
            ledger_event("2", WALLET, W, 12),
        ]

        assert resolver.resolve(events, "1").is_owned is True
        assert resolver.resolve(events, "2").is_owned is False


# =============================================================================
# LOCK STATE
# =============================================================================


class TestLockState:
    """Tests for last-event-wins lock state."""

    def test_deposit_lock_unlock_lock_is_locked(self, resolver: StateResolver):
        """
        GIVEN Deposit@10, Lock@20, Unlock@30, Lock@40
        WHEN I resolve the asset
        THEN it is owned and locked as of block 40
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, L, 20),
            ledger_event("42", WALLET, U, 30),
            ledger_event("42", WALLET, L, 40),
        ]

        state = resolver.resolve(events, "42")

        assert state.is_owned is True
        assert state.is_locked is True
        assert state.as_of == utc_at(40)

    def test_input_order_does_not_matter(self, resolver: StateResolver):
        """
        GIVEN the same events in every permutation
        WHEN I resolve the asset
        THEN the result is always identical
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, L, 20),
            ledger_event("42", WALLET, U, 30),
            ledger_event("42", WALLET, L, 40),
        ]
        expected = resolver.resolve(events, "42")

        for permutation in itertools.permutations(events):
            assert resolver.resolve(list(permutation), "42") == expected

    def test_lock_before_latest_deposit_is_stale(self, resolver: StateResolver):
        """
        GIVEN a Lock from a previous acquisition, then a new Deposit
        WHEN I resolve the asset
        THEN the stale lock is ignored and the asset is unlocked
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, L, 20),
            ledger_event("42", WALLET, W, 30),
            ledger_event("42", OTHER_WALLET, D, 30),
            ledger_event("42", OTHER_WALLET, W, 40),
            ledger_event("42", WALLET, D, 40),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is True
        assert state.is_locked is False
        assert state.as_of == utc_at(40)

    def test_unlock_wins_same_height_lock(self, resolver: StateResolver, caplog):
        """
        GIVEN a Lock and an Unlock at the same height
        WHEN I resolve the asset
        THEN Unlock wins (greater identifier) and the tie is logged
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, U, 20),
            ledger_event("42", WALLET, L, 20),
        ]

        with caplog.at_level(logging.WARNING):
            state = resolver.resolve(events, "42")

        assert state.is_locked is False
        assert "competing events at height 20" in caplog.text

    def test_lock_in_same_block_as_deposit_counts(self, resolver: StateResolver):
        """
        GIVEN a Deposit and a Lock in the same block
        WHEN I resolve the asset
        THEN the asset is locked
        """
        events = [
            ledger_event("42", WALLET, L, 10),
            ledger_event("42", WALLET, D, 10),
        ]

        state = resolver.resolve(events, "42")

        assert state.is_owned is True
        assert state.is_locked is True


# =============================================================================
# TIES
# =============================================================================


class TestSameHeightTies:
    """Tests for deterministic tie-breaking."""

    def test_withdraw_wins_same_height_deposit(self, resolver: StateResolver, caplog):
        """
        GIVEN Deposit and Withdraw by one wallet at the same height
        WHEN I resolve the asset
        THEN Withdraw wins and a warning is logged
        """
        events = [
            ledger_event("42", WALLET, W, 10),
            ledger_event("42", WALLET, D, 10),
        ]

        with caplog.at_level(logging.WARNING):
            state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is False
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_intra_block_transfer_resolves_to_receiver(self, resolver: StateResolver):
        """
        GIVEN Withdraw from WALLET and Deposit into OTHER_WALLET in one block
        WHEN I resolve the asset for each wallet
        THEN only OTHER_WALLET owns it
        """
        events = [
            ledger_event("42", WALLET, D, 5),
            ledger_event("42", OTHER_WALLET, D, 10),
            ledger_event("42", WALLET, W, 10),
        ]

        assert resolver.resolve(events, "42", wallet_address=OTHER_WALLET).is_owned is True
        assert resolver.resolve(events, "42", wallet_address=WALLET).is_owned is False

    def test_unambiguous_history_logs_nothing(self, resolver: StateResolver, caplog):
        """
        GIVEN strictly increasing heights
        WHEN I resolve the asset
        THEN no warning is logged
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, L, 11),
        ]

        with caplog.at_level(logging.WARNING):
            resolver.resolve(events, "42")

        assert caplog.records == []


# =============================================================================
# WALLET RESOLUTION
# =============================================================================


class TestResolveWallet:
    """Tests for resolving every asset of one wallet."""

    def test_resolves_each_asset_sorted(self, resolver: StateResolver):
        """
        GIVEN events for three assets
        WHEN I resolve the wallet
        THEN every asset gets a state, keyed and ordered by asset id
        """
        events = [
            ledger_event("3", WALLET, D, 1),
            ledger_event("1", WALLET, D, 2),
            ledger_event("2", WALLET, D, 3),
            ledger_event("2", WALLET, W, 4),
        ]

        states = resolver.resolve_wallet(events, WALLET)

        assert list(states) == ["1", "2", "3"]
        assert states["1"].is_owned is True
        assert states["2"].is_owned is False
        assert states["3"].is_owned is True

    def test_requested_assets_without_events_are_not_owned(self, resolver: StateResolver):
        """
        GIVEN an asset id with no events at all
        WHEN I resolve the wallet including that id
        THEN it resolves as not owned
        """
        states = resolver.resolve_wallet([], WALLET, asset_ids=["99"])

        assert states["99"].is_owned is False
        assert states["99"].wallet_address == WALLET

    def test_wallet_is_compared_case_insensitively(self, resolver: StateResolver):
        """
        GIVEN a deposit into a lower-case wallet
        WHEN I resolve for the same wallet in upper case
        THEN the wallet owns the asset
        """
        states = resolver.resolve_wallet([ledger_event("1", WALLET, D, 1)], WALLET.upper())

        assert states["1"].is_owned is True


# =============================================================================
# LOCKER CUSTODY
# =============================================================================


class TestLockerCustody:
    """Tests for withdraws that move an asset into the locker."""

    def test_withdraw_in_lock_block_keeps_ownership(self, resolver: StateResolver):
        """
        GIVEN Deposit@10, then in block 20 the owner's Withdraw and Lock
        AND the locker's Deposit of the same asset
        WHEN I resolve the asset for its owner
        THEN the owner still holds it, locked
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 20),
            ledger_event("42", LOCKER, D, 20),
            ledger_event("42", WALLET, L, 20),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is True
        assert state.is_locked is True
        assert state.as_of == utc_at(20)

    def test_locker_is_never_the_holder(self, resolver: StateResolver):
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 20),
            ledger_event("42", LOCKER, D, 20),
            ledger_event("42", WALLET, L, 20),
        ]

        state = resolver.resolve(events, "42")

        assert state.wallet_address == WALLET
        assert resolver.resolve(events, "42", wallet_address=LOCKER).is_owned is False

    def test_withdraw_in_lock_block_without_locker_deposit(self, resolver: StateResolver):
        """
        GIVEN Deposit@10, then Withdraw and Lock in block 20 and no locker deposit
        WHEN I resolve the asset for its owner
        THEN the owner still holds it, locked
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 20),
            ledger_event("42", WALLET, L, 20),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is True
        assert state.is_locked is True

    def test_unlock_back_into_wallet_is_unlocked(self, resolver: StateResolver):
        """
        GIVEN a locked asset returned from the locker to its owner
        AND an Unlock in the same block
        WHEN I resolve the asset
        THEN the owner holds it, unlocked, as of the unlock
        """
        events = [
            ledger_event("42", WALLET, D, 10),
            ledger_event("42", WALLET, W, 20),
            ledger_event("42", LOCKER, D, 20),
            ledger_event("42", WALLET, L, 20),
            ledger_event("42", LOCKER, W, 30),
            ledger_event("42", WALLET, D, 30),
            ledger_event("42", WALLET, U, 30),
        ]

        state = resolver.resolve(events, "42", wallet_address=WALLET)

        assert state.is_owned is True
        assert state.is_locked is False
        assert state.as_of == utc_at(30)


@pytest.mark.parametrize(
    "history, expected_locked",
    [
        ([(D, 10), (L, 15), (U, 20)], False),
        ([(D, 10), (L, 15)], True),
        ([(L, 5), (D, 10)], False),
    ],
)
def test_last_event_wins_examples(resolver: StateResolver, history, expected_locked):
    events = [ledger_event("42", WALLET, kind, height) for kind, height in history]

    state = resolver.resolve(events, "42")

    assert state.is_owned is True
    assert state.is_locked is expected_locked
