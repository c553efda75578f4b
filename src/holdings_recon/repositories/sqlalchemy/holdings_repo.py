"""SQLAlchemy implementation of HoldingsRepository."""

import logging
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from holdings_recon.core.exceptions import CacheWriteFailure
from holdings_recon.core.timezone import ensure_utc, now_utc
from holdings_recon.domain.models import CachedHolding
from holdings_recon.repositories.sqlalchemy.orm_models import WalletHoldingORM

logger = logging.getLogger(__name__)

_UPSERT_COLUMNS = ("is_locked", "last_event_at", "last_synced_at")


class SqlAlchemyHoldingsRepository:
    """SQLAlchemy-backed holdings cache repository."""

    def __init__(self, db: Session):
        self._db = db

    def list_holdings(self, wallet_address: str) -> list[CachedHolding]:
        """Get all cached holdings for a wallet, ordered by asset id."""
        orm_rows = (
            self._db.query(WalletHoldingORM)
            .filter(WalletHoldingORM.wallet_address == wallet_address)
            .order_by(WalletHoldingORM.asset_id)
            .all()
        )
        return [self._to_domain(r) for r in orm_rows]

    def get_holding(self, wallet_address: str, asset_id: str) -> Optional[CachedHolding]:
        """Get one cached holding by primary key."""
        orm_row = (
            self._db.query(WalletHoldingORM)
            .filter(
                WalletHoldingORM.wallet_address == wallet_address,
                WalletHoldingORM.asset_id == asset_id,
            )
            .first()
        )
        return self._to_domain(orm_row) if orm_row else None

    def list_wallets(self) -> list[str]:
        """List every wallet address with at least one cached holding."""
        rows = (
            self._db.query(WalletHoldingORM.wallet_address)
            .distinct()
            .order_by(WalletHoldingORM.wallet_address)
            .all()
        )
        return [r[0] for r in rows]

    def apply_batch(
        self,
        wallet_address: str,
        upserts: list[CachedHolding],
        deletes: list[str],
    ) -> None:
        """Apply upserts and deletes for one wallet in a single transaction."""
        for holding in upserts:
            if holding.wallet_address != wallet_address:
                raise ValueError(
                    f"Holding for {holding.wallet_address} in batch for {wallet_address}"
                )
        try:
            if upserts:
                self._upsert(upserts)
            if deletes:
                self._delete(wallet_address, deletes)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.warning(
                "Rolled back batch for %s (%d upserts, %d deletes): %s",
                wallet_address,
                len(upserts),
                len(deletes),
                exc,
            )
            raise CacheWriteFailure(wallet_address, str(exc)) from exc

    def close(self) -> None:
        """Close the session."""
        self._db.close()

    def _upsert(self, holdings: list[CachedHolding]) -> None:
        """Issue an insert-or-update keyed by (wallet_address, asset_id)."""
        synced_at = now_utc()
        rows = [
            {
                "wallet_address": h.wallet_address,
                "asset_id": h.asset_id,
                "is_locked": h.is_locked,
                "last_event_at": ensure_utc(h.last_event_at) if h.last_event_at else None,
                "last_synced_at": synced_at,
            }
            for h in holdings
        ]

        insert = self._dialect_insert()
        if insert is None:
            # No native upsert: merge row by row inside the same transaction
            for row in rows:
                self._db.merge(WalletHoldingORM(**row))
            self._db.flush()
            return

        stmt = insert(WalletHoldingORM.__table__).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["wallet_address", "asset_id"],
            set_={col: getattr(stmt.excluded, col) for col in _UPSERT_COLUMNS},
        )
        self._db.execute(stmt)

    def _delete(self, wallet_address: str, asset_ids: list[str]) -> None:
        self._db.execute(
            delete(WalletHoldingORM.__table__).where(
                WalletHoldingORM.__table__.c.wallet_address == wallet_address,
                WalletHoldingORM.__table__.c.asset_id.in_(asset_ids),
            )
        )

    def _dialect_insert(self):
        """Return the dialect's insert() that supports ON CONFLICT, if any."""
        dialect = self._db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
            return insert
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
            return insert
        return None

    @staticmethod
    def _to_domain(orm: WalletHoldingORM) -> CachedHolding:
        """Convert ORM model to domain model."""
        return CachedHolding(
            wallet_address=orm.wallet_address,
            asset_id=orm.asset_id,
            is_locked=bool(orm.is_locked),
            last_event_at=ensure_utc(orm.last_event_at) if orm.last_event_at else None,
            last_synced_at=ensure_utc(orm.last_synced_at) if orm.last_synced_at else None,
        )
