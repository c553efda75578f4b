"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from holdings_recon import __version__
from holdings_recon.api.routers import reconcile_router
from holdings_recon.app_context import ReconContext
from holdings_recon.config import setup_logging
from holdings_recon.core.exceptions import AppError


def create_app(context: Optional[ReconContext] = None) -> FastAPI:
    """
    Build the operator API.

    Args:
        context: Prebuilt context (tests inject one). Built from the
            environment at startup if not provided.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        ctx = context or ReconContext()
        setup_logging(ctx.settings)
        app.state.context = ctx
        yield
        # Shutdown
        if context is None:
            ctx.close()

    app = FastAPI(
        title="Holdings Reconciliation Engine",
        description="Reconciles cached wallet holdings against the ledger",
        version=__version__,
        lifespan=lifespan,
    )

    # Include routers
    app.include_router(reconcile_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Global handler for application errors."""
        return JSONResponse(
            status_code=400,
            content={"error": exc.code, "message": exc.message},
        )

    @app.get("/health")
    def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/")
    def root(request: Request) -> dict[str, str]:
        """Root endpoint with API info."""
        return {
            "app": request.app.state.context.settings.app_name,
            "version": __version__,
            "docs": "/docs",
        }

    return app
