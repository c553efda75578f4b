"""Repository layer - data access abstractions and implementations."""

from holdings_recon.repositories.protocols import HoldingsRepository

__all__ = [
    "HoldingsRepository",
]
