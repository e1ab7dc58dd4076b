"""
Main Entry Point - FastAPI Application.

This file contains:
- FastAPI app initialization
- Service container lifecycle (built on startup, queue drained on shutdown)
- Route mounting from api/routes/
- Middleware setup from api/middleware.py
- Health check endpoints

NO BUSINESS LOGIC - just wiring and setup.

Usage:
    uvicorn main:app --reload
    python main.py
"""

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

# Load environment variables with explicit path (works when run from any directory)
_env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env")
load_dotenv(_env_path)

# ============================================================================
# NON-BLOCKING LOGGING SETUP (MUST BE BEFORE OTHER IMPORTS)
# ============================================================================
from utils.logger import configure_non_blocking_logging

# MAIN_PY_LOG_LEVEL takes precedence, falls back to LOG_LEVEL
_main_log_level = os.getenv("MAIN_PY_LOG_LEVEL") or os.getenv("LOG_LEVEL")
_log_listener = configure_non_blocking_logging(level=_main_log_level)

# Import routes
from api.routes import sync_router, recordings_router, plaud_router

# Import middleware setup
from api.middleware import setup_middlewares, setup_request_logging
from api.dependencies import build_services
from db.connection_pool import close_all_connections, get_pool_stats

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# =============================================================================
# LIFESPAN EVENTS
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Plaud pipeline API starting up...")
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services()
    services = app.state.services
    services.transcription_queue.start()

    yield

    logger.info("Plaud pipeline API shutting down...")
    await services.transcription_queue.stop()
    close_all_connections()


# =============================================================================
# FASTAPI APPLICATION
# =============================================================================

app = FastAPI(
    title="Plaud Recording Pipeline API",
    description="Plaud device sync, audio transforms and transcription",
    version=VERSION,
    lifespan=lifespan,
)

# Setup middlewares (CORS, request logging)
setup_middlewares(app)
setup_request_logging(app)


# =============================================================================
# ROUTES
# =============================================================================

# Sync (router path /sync)
app.include_router(sync_router, tags=["Sync"])

# Recordings (router has /recordings prefix)
app.include_router(recordings_router, tags=["Recordings"])

# Plaud account connection (router has /plaud prefix)
app.include_router(plaud_router, tags=["Plaud"])


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint - health check."""
    return {"status": "ok", "version": VERSION, "service": "plaud-pipeline-api"}


@app.get("/healthz", include_in_schema=False)
async def healthz():
    """Liveness probe."""
    return {"status": "healthy"}


@app.get("/readyz", include_in_schema=False)
async def readyz():
    """Readiness probe: services built and the transcription worker running."""
    services = getattr(app.state, "services", None)
    if services is None or not services.transcription_queue.running:
        return JSONResponse(status_code=503, content={"status": "starting"})
    return {"status": "ready", "db_pool": get_pool_stats()}


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    # Suppress health check access logs
    class _HealthCheckFilter(logging.Filter):
        _SUPPRESSED = {"/healthz", "/readyz", "/"}

        def filter(self, record: logging.LogRecord) -> bool:
            msg = record.getMessage()
            return not any(f'"{path} ' in msg or f" {path} " in msg for path in self._SUPPRESSED)

    logging.getLogger("uvicorn.access").addFilter(_HealthCheckFilter())

    port = int(os.getenv("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        log_level=os.getenv("UVICORN_LOG_LEVEL", "info").lower(),
    )
