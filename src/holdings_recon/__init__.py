"""Holdings reconciliation engine: keeps the wallet holdings cache in line with the ledger."""

__version__ = "0.1.0"
