"""Enumerations for domain models."""

from enum import Enum


class EventKind(str, Enum):
    """Kinds of ownership and lock events recorded on the ledger.

    The string values double as the tie-break identifiers: on equal block
    heights the lexicographically greatest value wins.
    """

    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    LOCK = "Lock"
    UNLOCK = "Unlock"

    @property
    def is_ownership(self) -> bool:
        return self in (EventKind.DEPOSIT, EventKind.WITHDRAW)

    @property
    def is_lock_state(self) -> bool:
        return self in (EventKind.LOCK, EventKind.UNLOCK)


ALL_EVENT_KINDS: frozenset[EventKind] = frozenset(EventKind)


class EventSourceKind(str, Enum):
    """Where ledger events are fetched from."""

    LEDGER = "ledger"  # live ledger node
    MIRROR = "mirror"  # analytical mirror / warehouse


class DriftClassification(str, Enum):
    """Classification of one asset when comparing cache to ledger."""

    CONSISTENT = "Consistent"
    GHOST = "Ghost"
    MISSING = "Missing"


class RepairAction(str, Enum):
    """Row operation needed to converge one asset."""

    NONE = "NONE"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class RunStage(str, Enum):
    """Stages of a reconciliation run, in execution order."""

    FETCH = "Fetch"
    RESOLVE = "Resolve"
    DIFF = "Diff"
    REPAIR = "Repair"


class RunStatus(str, Enum):
    """Outcome of a reconciliation run."""

    SUCCEEDED = "Succeeded"
    PARTIALLY_REPAIRED = "PartiallyRepaired"
    FAILED = "Failed"
