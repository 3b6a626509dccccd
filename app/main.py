"""
FastAPI application and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — logging setup, table creation, expiry sweep scheduling
  2. CORS middleware — allows frontend origins to make cross-origin requests
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — /auth and /cards

Running locally:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  (registers every table on Base.metadata)
from app.config import settings
from app.database import AsyncSessionLocal, Base, engine, ensure_sqlite_directory
from app.exceptions import register_exception_handlers
from app.logging_config import setup_logging
from app.routers import auth, cards
from app.services.expiry_sweeper import ExpirySweeper


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Configures logging, creates all database tables if they don't exist,
      and starts the daily expiry sweep (unless EXPIRY_SWEEP_ENABLED=false).

    Shutdown:
      Stops the scheduler and disposes of the database engine.
    """
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    ensure_sqlite_directory(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sweeper = None
    if settings.EXPIRY_SWEEP_ENABLED:
        sweeper = ExpirySweeper(
            AsyncSessionLocal,
            hour=settings.EXPIRY_SWEEP_HOUR,
            minute=settings.EXPIRY_SWEEP_MINUTE,
            timezone=settings.SCHEDULER_TIMEZONE,
        )
        sweeper.start()
    app.state.expiry_sweeper = sweeper

    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield

    # --- Shutdown ---
    if sweeper is not None:
        sweeper.shutdown()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Bank card management: issuance, status lifecycle, balances and transfers",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(cards.router, prefix="/cards", tags=["Cards"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
