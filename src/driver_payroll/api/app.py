"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from driver_payroll import __version__
from driver_payroll.api.routes import (
    advances_router,
    audit_router,
    health_router,
    ledgers_router,
    payroll_router,
)
from driver_payroll.config import configure_logging, get_settings
from driver_payroll.services import (
    PayrollServices,
    has_services,
    init_services,
    shutdown_services,
)
from driver_payroll.storage import PersistenceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    if not has_services():
        settings = get_settings()
        configure_logging(settings)
        init_services(PayrollServices.open(settings))
    yield
    # Shutdown
    shutdown_services()


def create_app(services: PayrollServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Passing ``services`` installs them immediately; otherwise they are opened
    from settings at startup.
    """
    if services is not None:
        init_services(services)

    app = FastAPI(
        title="Driver Payroll API",
        description="Weekly driver payroll: advances, escrow, adjustments and pay calculation",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PersistenceError)
    async def persistence_exception_handler(
        request: Request, exc: PersistenceError
    ) -> JSONResponse:
        """The change is in memory but not on disk."""
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": f"Change applied but not saved: {exc.reason}",
                "code": "DATA_AT_RISK",
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(advances_router, prefix="/api/v1")
    app.include_router(ledgers_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")

    return app
