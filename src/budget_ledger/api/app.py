"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from budget_ledger.api.routes import budget_router, health_router, invoices_router, purchase_orders_router
from budget_ledger.clock import Clock, SystemClock
from budget_ledger.config import Settings, get_settings
from budget_ledger.database import create_schema, get_engine, get_session_factory
from budget_ledger.exceptions import (
    ConcurrencyConflictError,
    DocumentNotFoundError,
    InvalidTransitionError,
    LedgerError,
    ReauthenticationError,
    TerminalWriteError,
    ValidationError,
)
from budget_ledger.services.auth import IdentityProvider, InMemoryIdentityProvider, ReauthGate
from budget_ledger.services.invoice_service import InvoiceService
from budget_ledger.services.ledger_service import SubAccountLedger
from budget_ledger.services.purchase_order_service import PurchaseOrderService
from budget_ledger.store.base import DocumentStore
from budget_ledger.store.memory import InMemoryDocumentStore
from budget_ledger.store.sql import SqlDocumentStore

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[LedgerError], int, str]] = [
    (ReauthenticationError, status.HTTP_401_UNAUTHORIZED, "REAUTHENTICATION_REQUIRED"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
    (DocumentNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (InvalidTransitionError, status.HTTP_409_CONFLICT, "INVALID_TRANSITION"),
    (ConcurrencyConflictError, status.HTTP_409_CONFLICT, "CONCURRENCY_CONFLICT"),
    (TerminalWriteError, status.HTTP_500_INTERNAL_SERVER_ERROR, "STATUS_WRITE_FAILED"),
]


def error_status(exc: LedgerError) -> tuple[int, str]:
    """HTTP status and error code for a ledger error."""
    for exc_type, status_code, code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "LEDGER_ERROR"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await create_schema(engine)
    yield
    # Shutdown
    if engine is not None:
        await engine.dispose()


def build_store(app: FastAPI, settings: Settings) -> DocumentStore:
    """Create the configured document store backend."""
    if settings.store_backend == "memory":
        return InMemoryDocumentStore()

    engine = get_engine(settings.database_url)
    app.state.engine = engine
    return SqlDocumentStore(get_session_factory(engine), retry_limit=settings.optimistic_retry_limit)


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    identity_provider: IdentityProvider | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Budget Ledger API",
        description="Committed and actual spend per budget sub-account",
        version="0.1.0",
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

    app.state.engine = None
    app.state.store = store if store is not None else build_store(app, settings)
    app.state.identity_provider = identity_provider or InMemoryIdentityProvider()
    app.state.clock = clock or SystemClock()

    gate = ReauthGate(app.state.identity_provider)
    ledger = SubAccountLedger(app.state.store)
    app.state.ledger = ledger
    app.state.po_service = PurchaseOrderService(app.state.store, gate, app.state.clock, ledger)
    app.state.invoice_service = InvoiceService(app.state.store, gate, app.state.clock, ledger)

    # Exception handlers
    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError) -> JSONResponse:
        """Map ledger errors to HTTP responses."""
        status_code, code = error_status(exc)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
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
    app.include_router(purchase_orders_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(budget_router, prefix="/api/v1")

    return app
