"""FunnelSync — FastAPI Application Entry Point.

Ad-platform data synchronization and caching engine.
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from funnelsync.database import init_db, check_connection, db_url, _mask_url
from funnelsync.scheduler.jobs import start_scheduler, stop_scheduler
from funnelsync.api.summary_routes import router as summary_router
from funnelsync.api.sync_routes import router as sync_router
from funnelsync.api.validation_routes import router as validation_router
from funnelsync.core.logging import get_logger

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("FunnelSync starting up...")
    if check_connection():
        try:
            init_db()
        except Exception as e:
            logger.error(f"Table creation failed: {e}")
    else:
        logger.error("Database NOT connected — endpoints will fail")
    if not IS_SERVERLESS:
        start_scheduler()
    yield
    if not IS_SERVERLESS:
        stop_scheduler()
    logger.info("FunnelSync shut down")


app = FastAPI(
    title="FunnelSync",
    description="Syncs Meta and Google Ads performance into canonical booking-funnel summaries with a current-period cache and a permanent archive.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(summary_router)
app.include_router(sync_router)
app.include_router(validation_router)


@app.get("/health", tags=["System"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "funnelsync",
        "version": "1.0.0",
        "database": "postgresql" if db_url.startswith("postgresql") else "sqlite",
        "database_url": _mask_url(db_url),
    }
