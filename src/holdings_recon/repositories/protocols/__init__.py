"""Repository protocol definitions (interfaces)."""

from holdings_recon.repositories.protocols.holdings_repo import HoldingsRepository

__all__ = [
    "HoldingsRepository",
]
