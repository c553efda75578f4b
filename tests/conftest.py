"""
Pytest configuration and fixtures for holdings reconciliation tests.

This module provides:
- In-memory SQLite database fixtures for the holdings cache
- In-memory event sources (healthy, flaky, failing)
- In-memory holdings repository with write-failure injection
- Event and time helpers in UTC
- Service and API client fixtures
"""

import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Iterator, Optional

import pytest
from fastapi.testclient import TestClient

from holdings_recon.app_context import ReconContext
from holdings_recon.config.settings import Settings
from holdings_recon.core.exceptions import CacheWriteFailure, SourceUnavailable
from holdings_recon.core.retry import RetryPolicy
from holdings_recon.core.timezone import UTC
from holdings_recon.domain.models import (
    CachedHolding,
    EventKind,
    EventSourceKind,
    LedgerEvent,
)
from holdings_recon.main import create_app
from holdings_recon.repositories.sqlalchemy import (
    Base,
    SqlAlchemyHoldingsRepository,
    create_db_engine,
    create_session_factory,
    init_db,
)
from holdings_recon.services import EventSourceAdapter, ReconciliationService

WALLET = "0xa11ce"
OTHER_WALLET = "0xb0b"
LOCKER = "0x10c4e2"


# =============================================================================
# TIME AND EVENT HELPERS
# =============================================================================

BASE_TIME = UTC.localize(datetime(2024, 6, 1, 12, 0, 0))


def utc_at(block_height: int) -> datetime:
    """Deterministic block timestamp: one second per block after BASE_TIME."""
    return BASE_TIME + timedelta(seconds=block_height)


def raw_event(
    asset_id: str,
    wallet_address: str,
    kind: str,
    block_height: int,
    timestamp: Optional[Any] = None,
) -> dict[str, Any]:
    """Build a raw payload in the common wire shape."""
    return {
        "asset_id": asset_id,
        "wallet_address": wallet_address,
        "event_type": kind,
        "block_height": block_height,
        "block_timestamp": timestamp if timestamp is not None else utc_at(block_height).isoformat(),
    }


def ledger_event(
    asset_id: str,
    wallet_address: str,
    kind: EventKind,
    block_height: int,
) -> LedgerEvent:
    """Build a decoded LedgerEvent."""
    return LedgerEvent(
        asset_id=asset_id,
        wallet_address=wallet_address,
        kind=kind,
        block_height=block_height,
        observed_at=utc_at(block_height),
    )


def cached(
    asset_id: str,
    wallet_address: str = WALLET,
    is_locked: bool = False,
    last_event_height: Optional[int] = None,
) -> CachedHolding:
    """Build a cache row, optionally stamped with a block's timestamp."""
    return CachedHolding(
        wallet_address=wallet_address,
        asset_id=asset_id,
        is_locked=is_locked,
        last_event_at=utc_at(last_event_height) if last_event_height is not None else None,
    )


def seed_holdings(repo, rows: Iterable[CachedHolding]) -> None:
    """Write cache rows through apply_batch, one batch per wallet."""
    by_wallet: dict[str, list[CachedHolding]] = {}
    for row in rows:
        by_wallet.setdefault(row.wallet_address, []).append(row)
    for wallet, holdings in by_wallet.items():
        repo.apply_batch(wallet, holdings, [])


class FakeClock:
    """Monotonic clock that advances by a fixed step on every read."""

    def __init__(self, start: float = 0.0, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# EVENT SOURCE FAKES
# =============================================================================


class InMemoryEventSource:
    """
    Event source over a list of raw payloads.

    Pages are cut at page_size. The first fail_first fetches raise
    SourceUnavailable when iteration starts, like a dropped connection.
    """

    def __init__(
        self,
        events: Optional[Iterable[Any]] = None,
        kind: EventSourceKind = EventSourceKind.LEDGER,
        page_size: int = 25,
        fail_first: int = 0,
    ):
        self.kind = kind
        self.events = list(events or [])
        self.page_size = page_size
        self.fail_first = fail_first
        self.calls: list[tuple[str, Any]] = []
        self.since_heights: list[Optional[int]] = []

    def fetch_wallet_pages(
        self,
        wallet_address: str,
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        self._start("wallet", wallet_address, since_height)
        matches = [
            p for p in self.events
            if isinstance(p, dict) and str(p.get("wallet_address", "")).lower() == wallet_address
        ]
        yield from self._paged(matches)

    def fetch_asset_pages(
        self,
        asset_ids: list[str],
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        self._start("assets", list(asset_ids), since_height)
        wanted = set(asset_ids)
        matches = [
            p for p in self.events
            if isinstance(p, dict) and str(p.get("asset_id")) in wanted
        ]
        yield from self._paged(matches)

    def _start(self, query: str, argument: Any, since_height: Optional[int]) -> None:
        self.since_heights.append(since_height)
        self.calls.append((query, argument))
        if self.fail_first > 0:
            self.fail_first -= 1
            raise SourceUnavailable(self.kind.value, "connection reset by peer")

    def _paged(self, payloads: list[Any]) -> Iterator[list[Any]]:
        for start in range(0, len(payloads), self.page_size):
            yield payloads[start:start + self.page_size]


class FailingEventSource:
    """Event source that is always unreachable."""

    kind = EventSourceKind.LEDGER

    def __init__(self):
        self.attempts = 0

    def fetch_wallet_pages(self, wallet_address, event_kinds, since_height=None):
        self.attempts += 1
        raise SourceUnavailable(self.kind.value, "Network unavailable")
        yield  # pragma: no cover

    def fetch_asset_pages(self, asset_ids, event_kinds, since_height=None):
        self.attempts += 1
        raise SourceUnavailable(self.kind.value, "Network unavailable")
        yield  # pragma: no cover


# =============================================================================
# HOLDINGS REPOSITORY FAKE
# =============================================================================


class InMemoryHoldingsRepository:
    """
    Thread-safe in-memory holdings cache.

    apply_batch calls whose 1-based number is in fail_calls raise
    CacheWriteFailure without touching the data.
    """

    def __init__(self, rows: Optional[Iterable[CachedHolding]] = None, fail_calls: Iterable[int] = ()):
        self._rows: dict[tuple[str, str], CachedHolding] = {}
        self._lock = threading.Lock()
        self.fail_calls = set(fail_calls)
        self.batch_calls = 0
        for row in rows or []:
            self._rows[(row.wallet_address, row.asset_id)] = row

    def list_holdings(self, wallet_address: str) -> list[CachedHolding]:
        with self._lock:
            return sorted(
                (r for (w, _), r in self._rows.items() if w == wallet_address),
                key=lambda r: r.asset_id,
            )

    def get_holding(self, wallet_address: str, asset_id: str) -> Optional[CachedHolding]:
        with self._lock:
            return self._rows.get((wallet_address, asset_id))

    def list_wallets(self) -> list[str]:
        with self._lock:
            return sorted({w for w, _ in self._rows})

    def apply_batch(self, wallet_address: str, upserts: list[CachedHolding], deletes: list[str]) -> None:
        with self._lock:
            self.batch_calls += 1
            if self.batch_calls in self.fail_calls:
                raise CacheWriteFailure(wallet_address, f"injected failure on call {self.batch_calls}")
            for h in upserts:
                self._rows[(h.wallet_address, h.asset_id)] = h
            for asset_id in deletes:
                self._rows.pop((wallet_address, asset_id), None)

    def close(self) -> None:
        pass


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    engine = create_db_engine("sqlite:///:memory:")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return create_session_factory(test_engine)


@pytest.fixture
def holdings_repo(session_factory) -> SqlAlchemyHoldingsRepository:
    """Provide test HoldingsRepository."""
    repo = SqlAlchemyHoldingsRepository(session_factory())
    yield repo
    repo.close()


@pytest.fixture
def holdings_repo_factory(session_factory) -> Callable[[], SqlAlchemyHoldingsRepository]:
    """Factory opening a fresh repository per reconciliation run."""
    return lambda: SqlAlchemyHoldingsRepository(session_factory())


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def sleeps() -> list[float]:
    """Delays the retry policy would have slept for."""
    return []


@pytest.fixture
def fast_retry(sleeps) -> RetryPolicy:
    """Retry policy that records delays instead of sleeping."""
    return RetryPolicy(
        max_attempts=3,
        base_delay=0.5,
        max_delay=2.0,
        jitter=0.0,
        sleep=sleeps.append,
    )


@pytest.fixture
def make_service(holdings_repo_factory, fast_retry) -> Callable[..., ReconciliationService]:
    """Factory for a ReconciliationService over one event source."""

    def _make(source, locker_address: Optional[str] = None, **kwargs) -> ReconciliationService:
        adapter = EventSourceAdapter(
            {source.kind: source},
            default_source=source.kind,
            locker_address=locker_address,
        )
        kwargs.setdefault("repository_factory", holdings_repo_factory)
        kwargs.setdefault("retry_policy", fast_retry)
        return ReconciliationService(event_adapter=adapter, **kwargs)

    return _make


# =============================================================================
# API TEST CLIENT FIXTURE
# =============================================================================


@pytest.fixture
def ledger_source() -> InMemoryEventSource:
    """Event source backing the API client."""
    return InMemoryEventSource()


@pytest.fixture
def recon_context(ledger_source, fast_retry) -> ReconContext:
    """ReconContext on in-memory SQLite with the in-memory ledger source."""
    settings = Settings(
        database_url="sqlite:///:memory:",
        mirror_database_url=None,
        repair_batch_size=2,
        max_concurrency=1,
        _env_file=None,
    )
    ctx = ReconContext(
        settings=settings,
        sources={EventSourceKind.LEDGER: ledger_source},
        retry_policy=fast_retry,
    )
    yield ctx
    ctx.close()


@pytest.fixture
def client(recon_context) -> TestClient:
    """Provide FastAPI test client with the test context."""
    with TestClient(create_app(recon_context)) as c:
        yield c
