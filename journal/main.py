"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from journal.config import settings
from journal.database import create_db_and_tables
from journal.errors import JournalError
from journal.utils.logging import setup_logging
from journal.api import auth, api_keys, trades, entries, dashboard, system

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()
    logger.info(f"Trading journal started (upsert strategy: {settings.upsert_strategy})")
    yield


app = FastAPI(
    title="Trading Journal",
    description="Trade journal with API-key ingestion for trading bots",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(JournalError)
async def journal_error_handler(request: Request, exc: JournalError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Unexpected server error"})


# Mount routers
app.include_router(auth.router)
app.include_router(api_keys.router)
app.include_router(trades.router)
app.include_router(entries.router)
app.include_router(dashboard.router)
app.include_router(system.router)
