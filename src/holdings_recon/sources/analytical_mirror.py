"""Analytical mirror event source (SQL warehouse copy of the ledger)."""

import logging
from typing import Any, Iterable, Iterator, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Engine,
    Integer,
    MetaData,
    String,
    Table,
    func,
    select,
)
from sqlalchemy.exc import DBAPIError, OperationalError

from holdings_recon.core.exceptions import SourceUnavailable
from holdings_recon.domain.models import EventKind, EventSourceKind
from holdings_recon.sources.event_source import chunked

logger = logging.getLogger(__name__)


def mirror_events_table(name: str = "ledger_events", metadata: Optional[MetaData] = None) -> Table:
    """
    Describe the mirror's flattened event table.

    Columns are nullable: the mirror is not schema-enforced and rows that
    fail decoding are skipped downstream.
    """
    return Table(
        name,
        metadata or MetaData(),
        Column("event_id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True),
        Column("asset_id", String(64), nullable=True, index=True),
        Column("wallet_address", String(64), nullable=True, index=True),
        Column("event_type", String(128), nullable=True),
        Column("block_height", BigInteger, nullable=True),
        Column("event_index", Integer, nullable=True),
        Column("block_timestamp", DateTime, nullable=True),
    )


class AnalyticalMirrorSource:
    """
    Event source backed by the analytical mirror.

    Pages are keyset-paginated on event_id (append order). Event kind
    filtering happens after decoding, since the mirror stores raw contract
    event names.
    """

    kind = EventSourceKind.MIRROR

    def __init__(
        self,
        engine: Engine,
        table_name: str = "ledger_events",
        page_size: int = 10000,
        asset_chunk_size: int = 100,
    ):
        self._engine = engine
        self._table = mirror_events_table(table_name)
        self._page_size = page_size
        self._asset_chunk_size = asset_chunk_size

    @property
    def table(self) -> Table:
        return self._table

    def fetch_wallet_pages(
        self,
        wallet_address: str,
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        t = self._table
        condition = func.lower(t.c.wallet_address) == wallet_address.lower()
        yield from self._paginate(condition, since_height)

    def fetch_asset_pages(
        self,
        asset_ids: list[str],
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        for chunk in chunked(sorted(asset_ids), self._asset_chunk_size):
            yield from self._paginate(self._table.c.asset_id.in_(chunk), since_height)

    def _paginate(self, condition, since_height: Optional[int]) -> Iterator[list[Any]]:
        t = self._table
        last_id: Optional[int] = None
        while True:
            query = select(
                t.c.event_id,
                t.c.asset_id,
                t.c.wallet_address,
                t.c.event_type,
                t.c.block_height,
                t.c.block_timestamp,
            ).where(condition)
            if since_height is not None:
                query = query.where(t.c.block_height >= since_height)
            if last_id is not None:
                query = query.where(t.c.event_id > last_id)
            query = query.order_by(t.c.event_id).limit(self._page_size)

            try:
                with self._engine.connect() as conn:
                    rows = conn.execute(query).mappings().all()
            except (OperationalError, DBAPIError) as exc:
                raise SourceUnavailable(self.kind.value, str(exc.orig or exc)) from exc

            if not rows:
                return
            last_id = rows[-1]["event_id"]
            yield [
                {
                    "asset_id": row["asset_id"],
                    "wallet_address": row["wallet_address"],
                    "event_type": row["event_type"],
                    "block_height": row["block_height"],
                    "block_timestamp": row["block_timestamp"],
                }
                for row in rows
            ]
            if len(rows) < self._page_size:
                return
