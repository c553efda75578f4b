"""API routers package."""

from holdings_recon.api.routers.reconcile import router as reconcile_router

__all__ = [
    "reconcile_router",
]
