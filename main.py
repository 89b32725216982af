# main.py
# Role: Application entry point for the trade ledger.
#       Configures logging, creates database tables, builds the per-app
#       SessionStore and registers all route modules.

"""
Main FastAPI app for the multi-currency trade ledger.

Here we only:
- set up logging
- create DB tables
- wire the session store (persistence gateway + rate sources)
- map engine errors to HTTP status codes
- include route modules
"""

import logging
import sys

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import config
from db import Base, SessionLocal, engine
from app.routes_root import router as root_router
from app.routes_transactions import router as transactions_router
from app.routes_currency import router as currency_router
from app.routes_upload import router as upload_router
from app.routes_dashboard import router as dashboard_router
from app.services.errors import (
    InvalidImportFileError,
    InvalidRateError,
    InvalidTransactionError,
    LedgerError,
    LedgerUnavailableError,
    TransactionNotFoundError,
)
from app.services.persistence import SqlLedgerGateway
from app.services.rate_sources import default_chain
from app.services.session_store import SessionStore


# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

def setup_logging() -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE))

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        handlers=handlers,
    )


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Error mapping
# -------------------------------------------------------------------

ERROR_STATUS = (
    (TransactionNotFoundError, 404),
    (InvalidTransactionError, 422),
    (InvalidRateError, 422),
    (InvalidImportFileError, 422),
    (LedgerUnavailableError, 503),
)


async def ledger_error_handler(request: Request, exc: LedgerError):
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    logger.warning("[api] %s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"error": str(exc)})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Rejected inputs are not echoed back: Infinity / NaN cannot be rendered as JSON
    errors = [{k: v for k, v in e.items() if k != "input"} for e in exc.errors()]
    logger.warning("[api] %s %s -> 422: %d invalid field(s)", request.method, request.url.path, len(errors))
    return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})


# -------------------------------------------------------------------
# App & DB setup
# -------------------------------------------------------------------

def create_app(store: SessionStore = None) -> FastAPI:
    """
    Build the FastAPI app. Tests pass their own store (in-memory DB,
    stubbed rate sources); production gets the SQL gateway and the
    Frankfurter -> exchangerate.host chain.
    """
    if store is None:
        # Create database tables (only if they don't exist yet).
        Base.metadata.create_all(bind=engine)
        store = SessionStore(
            gateway=SqlLedgerGateway(SessionLocal),
            rate_chain=default_chain(),
            default_canonical=config.DEFAULT_CANONICAL_CURRENCY,
        )

    app = FastAPI(title="Trade Ledger")
    app.state.store = store
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Root / health
    app.include_router(root_router)

    # Ledger CRUD and table view
    app.include_router(transactions_router)

    # Currency table, rate refresh, canonical currency change
    app.include_router(currency_router)

    # JSON / CSV export and import
    app.include_router(upload_router)

    # Totals, profit curve, category breakdown
    app.include_router(dashboard_router)

    return app


setup_logging()

# FastAPI application instance (uvicorn main:app)
app = create_app()
