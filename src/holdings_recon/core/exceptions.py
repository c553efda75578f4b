"""Application-level exceptions."""

from typing import Any, Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, code: str = "APP_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class SourceUnavailable(AppError):
    """Raised when an event source cannot be reached or rejects our credentials.

    Transient: the orchestrator retries these with backoff.
    """

    def __init__(self, source: str, detail: str):
        self.source = source
        super().__init__(f"Event source {source} unavailable: {detail}", code="SOURCE_UNAVAILABLE")


class LedgerQueryError(AppError):
    """Raised when a source rejects a query for a reason retrying will not fix."""

    def __init__(self, source: str, detail: str):
        self.source = source
        super().__init__(f"Event source {source} rejected query: {detail}", code="LEDGER_QUERY_ERROR")


class MalformedEvent(AppError):
    """Raised when a raw payload cannot be decoded into a LedgerEvent."""

    def __init__(self, reason: str, payload: Optional[Any] = None):
        self.reason = reason
        self.payload = payload
        super().__init__(f"Malformed ledger event: {reason}", code="MALFORMED_EVENT")


class ResolutionAmbiguous(AppError):
    """Competing events for one asset at the same block height.

    Never raised by the resolver; the deterministic tie-break applies and the
    condition is logged as a warning using this message format.
    """

    def __init__(self, asset_id: str, block_height: int, kinds: list[str]):
        self.asset_id = asset_id
        self.block_height = block_height
        self.kinds = kinds
        super().__init__(
            f"Asset {asset_id} has competing events at height {block_height}: {', '.join(kinds)}",
            code="RESOLUTION_AMBIGUOUS",
        )


class CacheWriteFailure(AppError):
    """Raised when a batch write to the holdings cache fails and was rolled back."""

    def __init__(self, wallet_address: str, detail: str):
        self.wallet_address = wallet_address
        super().__init__(
            f"Cache write failed for wallet {wallet_address}: {detail}",
            code="CACHE_WRITE_FAILURE",
        )


class PartialRepairError(AppError):
    """Raised when some repair batches committed and a later one failed twice."""

    def __init__(self, wallet_address: str, summary: Any, cause: CacheWriteFailure):
        self.wallet_address = wallet_address
        self.summary = summary
        self.cause = cause
        super().__init__(
            f"Wallet {wallet_address} partially repaired "
            f"({summary.batches_applied} batches committed): {cause.message}",
            code="PARTIALLY_REPAIRED",
        )


class RunTimeout(AppError):
    """Raised at a cancellation point once a run exceeds its time budget."""

    def __init__(self, wallet_address: str, timeout_seconds: float):
        self.wallet_address = wallet_address
        super().__init__(
            f"Reconciliation of {wallet_address} exceeded {timeout_seconds:g}s",
            code="RUN_TIMEOUT",
        )
