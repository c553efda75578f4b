"""Dependency injection for FastAPI."""

from fastapi import Request

from holdings_recon.app_context import ReconContext
from holdings_recon.services import ReconciliationService


def get_context(request: Request) -> ReconContext:
    """Provide the ReconContext attached to the running app."""
    return request.app.state.context


def get_reconciliation_service(request: Request) -> ReconciliationService:
    """Provide ReconciliationService instance."""
    return get_context(request).reconciliation
