"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from estimate_ledger.api.routes import (
    estimates_router,
    health_router,
    invoices_router,
    payments_router,
)
from estimate_ledger.config import get_settings
from estimate_ledger.database import dispose_db, init_db
from estimate_ledger.errors import LedgerError
from estimate_ledger.ledger import EstimateLedger, bootstrap

logger = logging.getLogger(__name__)

# HTTP status per error code
ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "VALIDATION_ERROR": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "STORE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
    "SEQUENCE_NOT_CONFIGURED": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    owns_db = getattr(app.state, "ledger", None) is None
    if owns_db:
        settings = get_settings()
        engine, factory = init_db()
        await bootstrap(engine, factory, settings)
        app.state.ledger = EstimateLedger(factory, settings=settings)
    yield
    # Shutdown
    if owns_db:
        await dispose_db()


def create_app(ledger: EstimateLedger | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A ledger passed in is used as-is; otherwise one is built from settings
    at startup.
    """
    app = FastAPI(
        title="Estimate Ledger API",
        description="Estimate, invoice and payment lifecycle engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    if ledger is not None:
        app.state.ledger = ledger

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Map ledger errors to HTTP status codes."""
        status_code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

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
    app.include_router(estimates_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
