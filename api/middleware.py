"""
HTTP middleware.

- CORS for the web frontend (CORS_ORIGINS, comma separated)
- Request logging with timing
"""

import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("plaud.api")

# Paths too noisy to log on every hit
QUIET_PATHS = frozenset({"/", "/healthz"})


def _cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def setup_middlewares(app: FastAPI) -> None:
    """Attach CORS. Without CORS_ORIGINS no cross-origin access is allowed."""
    origins = _cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )
        logger.info("CORS enabled for %d origin(s)", len(origins))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path not in QUIET_PATHS:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.debug(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
        return response


def setup_request_logging(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)
