"""Decoding of raw source payloads into LedgerEvent."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from holdings_recon.core.exceptions import MalformedEvent
from holdings_recon.core.timezone import parse_timestamp
from holdings_recon.domain.models import EventKind, EventSourceKind, LedgerEvent

# Event names seen on the ledger and in the mirror, by final segment
_KIND_ALIASES: dict[str, EventKind] = {
    "deposit": EventKind.DEPOSIT,
    "withdraw": EventKind.WITHDRAW,
    "lock": EventKind.LOCK,
    "nftlocked": EventKind.LOCK,
    "locked": EventKind.LOCK,
    "unlock": EventKind.UNLOCK,
    "nftunlocked": EventKind.UNLOCK,
    "unlocked": EventKind.UNLOCK,
}


def parse_event_kind(value: str) -> EventKind:
    """
    Map an event type name to EventKind.

    Fully qualified contract names (A.<address>.<Contract>.<Event>) are
    reduced to their last segment. Raises ValueError for unknown types.
    """
    name = value.strip().rsplit(".", 1)[-1].lower()
    try:
        return _KIND_ALIASES[name]
    except KeyError:
        raise ValueError(f"Unknown event type: {value!r}") from None


class LedgerEventPayload(BaseModel):
    """Common wire shape every source normalizes its raw rows into."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    asset_id: str = Field(min_length=1)
    wallet_address: str = Field(min_length=1)
    event_type: EventKind
    block_height: int = Field(ge=0)
    block_timestamp: datetime

    @field_validator("asset_id", mode="before")
    @classmethod
    def _asset_id_to_str(cls, value: Any) -> Any:
        # Asset ids arrive as JSON numbers from some indexers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("wallet_address")
    @classmethod
    def _lowercase_wallet(cls, value: str) -> str:
        return value.lower()

    @field_validator("event_type", mode="before")
    @classmethod
    def _parse_kind(cls, value: Any) -> EventKind:
        if isinstance(value, EventKind):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown event type: {value!r}")
        return parse_event_kind(value)

    @field_validator("block_height", mode="before")
    @classmethod
    def _reject_bool_height(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("block_height must be an integer")
        return value

    @field_validator("block_timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        if value is None:
            raise ValueError("block_timestamp is required")
        try:
            return parse_timestamp(value)
        except (ValueError, OverflowError) as exc:
            raise ValueError(str(exc)) from exc


def decode_event(payload: Any, source: EventSourceKind) -> LedgerEvent:
    """
    Validate one raw payload and convert it to a LedgerEvent.

    Raises MalformedEvent when the payload cannot be decoded.
    """
    if not isinstance(payload, dict):
        raise MalformedEvent(f"expected an object, got {type(payload).__name__}", payload)
    try:
        parsed = LedgerEventPayload.model_validate(payload)
    except ValidationError as exc:
        raise MalformedEvent(_describe(exc), payload) from exc
    return LedgerEvent(
        asset_id=parsed.asset_id,
        wallet_address=parsed.wallet_address,
        kind=parsed.event_type,
        block_height=parsed.block_height,
        observed_at=parsed.block_timestamp,
        source=source,
    )


def _describe(exc: ValidationError) -> str:
    first: Optional[dict] = exc.errors()[0] if exc.errors() else None
    if first is None:
        return str(exc)
    location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
    return f"{location}: {first.get('msg', 'invalid')}"
