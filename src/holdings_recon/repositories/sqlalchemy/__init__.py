"""SQLAlchemy repository implementations."""

from holdings_recon.repositories.sqlalchemy.database import (
    create_db_engine,
    create_session_factory,
    init_db,
    Base,
)
from holdings_recon.repositories.sqlalchemy.holdings_repo import SqlAlchemyHoldingsRepository

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "Base",
    "SqlAlchemyHoldingsRepository",
]
