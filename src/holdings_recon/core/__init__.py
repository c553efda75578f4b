"""Core utilities and shared functionality."""

from holdings_recon.core.timezone import (
    now_utc,
    ensure_utc,
    parse_timestamp,
    UTC,
)
from holdings_recon.core.exceptions import (
    AppError,
    ValidationError,
    SourceUnavailable,
    LedgerQueryError,
    MalformedEvent,
    ResolutionAmbiguous,
    CacheWriteFailure,
    PartialRepairError,
    RunTimeout,
)
from holdings_recon.core.retry import RetryPolicy

__all__ = [
    "now_utc",
    "ensure_utc",
    "parse_timestamp",
    "UTC",
    "AppError",
    "ValidationError",
    "SourceUnavailable",
    "LedgerQueryError",
    "MalformedEvent",
    "ResolutionAmbiguous",
    "CacheWriteFailure",
    "PartialRepairError",
    "RunTimeout",
    "RetryPolicy",
]
