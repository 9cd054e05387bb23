"""
FastAPI application

Router registration, error mapping and app settings.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter, TransactionConflictError, init_schema
from core.config.loader import get_settings
from core.ledger.context import CompanyLedger
from core.ledger.errors import (
    EntryNotFoundError,
    FinancialAccountNotFoundError,
    LedgerError,
    LedgerValidationError,
    RecordNotFoundError,
    UnknownAccountError,
)
from core.logging import setup_logging
from web.routes import health, ledger, repair

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App lifecycle"""
    settings = get_settings()
    setup_logging("web", console_level=logging.getLevelName(settings.config.log_level))

    # create the schema and seed the default company on start-up
    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)
        await CompanyLedger.open(db, settings.default_company_id, settings.default_currency)

    logger.info("Web: ledger API ready", extra={"db_path": str(settings.db_path)})
    yield


def _status_for(error: Exception) -> int:
    not_found = (EntryNotFoundError, FinancialAccountNotFoundError, RecordNotFoundError, UnknownAccountError)
    if isinstance(error, not_found):
        return 404
    if isinstance(error, LedgerValidationError):
        return 400
    if isinstance(error, TransactionConflictError):
        return 409
    return 500


async def ledger_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"Unhandled ledger error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "error_type": "ValueError"})


app = FastAPI(
    title="Ledger API",
    description="Double-entry ledger and balance repair API",
    version=health.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS (development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(LedgerError, ledger_error_handler)
app.add_exception_handler(TransactionConflictError, ledger_error_handler)
app.add_exception_handler(ValueError, value_error_handler)

# =========================================================================
# API routers
# =========================================================================

app.include_router(health.router)
app.include_router(ledger.router)
app.include_router(repair.router)
