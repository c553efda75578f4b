"""SQLAlchemy ORM model definitions."""

from sqlalchemy import Column, String, DateTime, Boolean, Index

from holdings_recon.repositories.sqlalchemy.database import Base


class WalletHoldingORM(Base):
    """SQLAlchemy model for CachedHolding (denormalized holdings cache)."""

    __tablename__ = "wallet_holdings"

    wallet_address = Column(String(64), primary_key=True)
    asset_id = Column(String(64), primary_key=True)
    is_locked = Column(Boolean, nullable=False, default=False)
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_wallet_holdings_asset", "asset_id"),
    )
