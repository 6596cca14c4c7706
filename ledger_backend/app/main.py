"""
FastAPI Application Entry Point.

This is the main application file for the Ledger Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi.exceptions import RequestValidationError
from ledger_backend.app.core.config import settings
from ledger_backend.app.api.v1.router import router as api_v1_router
from ledger_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from ledger_backend.app.db.session import engine, Base, AsyncSessionLocal, get_db, transaction_scope
from ledger_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from ledger_backend.app.services.chart_of_accounts import ChartOfAccountsService

# Import models to ensure they are registered with Base
from ledger_backend.app.models.audit_log import AuditLog
from ledger_backend.app.models.account import Account, AccountBalance
from ledger_backend.app.models.journal_entry import JournalEntry, JournalLine, JournalSequence
from ledger_backend.app.models.ledger_entry import LedgerEntry
from ledger_backend.app.models.party import Party, PartyTransaction
from ledger_backend.app.models.trade_document import TradeDocument, TradeDocumentLine

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Seeds the default chart of accounts when enabled.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.seed_default_chart:
        async with AsyncSessionLocal() as db:
            async with transaction_scope(db):
                await ChartOfAccountsService(db).seed_default_chart()

    logger.info("%s %s started", settings.app_name, settings.api_version)
    yield
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Double-entry accounting ledger: journals, ledgers, party sub-ledgers and financial statements",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Pings the database; the books are unusable without it, so a failed ping
    reports "degraded" instead of raising.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Database ping failed")
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
        "reports": f"/{settings.api_version}/reports",
    }
