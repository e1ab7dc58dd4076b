"""
Database Connection Pool Manager
=================================

Thread-safe psycopg2 connection pool shared by the storage classes.

Features:
- ThreadedConnectionPool keyed on the active db config
- Retry with exponential backoff on OperationalError
- Feature flag control via USE_CONNECTION_POOLING env var
- Stale connection detection before handing a connection out

Usage:
    from db.connection_pool import get_db_connection

    with get_db_connection(db_config) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import psycopg2
from psycopg2 import pool
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

USE_CONNECTION_POOLING = os.getenv("USE_CONNECTION_POOLING", "true").lower() in ("true", "1", "yes")

MIN_CONNECTIONS = int(os.getenv("DB_POOL_MIN_CONNECTIONS", "1"))
MAX_CONNECTIONS = int(os.getenv("DB_POOL_MAX_CONNECTIONS", "10"))
CONNECTION_TIMEOUT = int(os.getenv("DB_CONNECTION_TIMEOUT", "30"))

MAX_RETRIES = int(os.getenv("DB_MAX_RETRIES", "3"))
RETRY_DELAY_BASE = float(os.getenv("DB_RETRY_DELAY_BASE", "2.0"))


_pool: Optional[pool.ThreadedConnectionPool] = None
_pool_lock = Lock()
_pool_config: Optional[dict] = None


def _get_pool(db_config: dict) -> pool.ThreadedConnectionPool:
    """Return the pool for this config, (re)creating it when the config changed."""
    global _pool, _pool_config

    with _pool_lock:
        if _pool is not None and _pool_config == db_config:
            return _pool

        if _pool is not None:
            logger.info("Database config changed, closing existing pool")
            _pool.closeall()
            _pool = None

        _pool = pool.ThreadedConnectionPool(
            MIN_CONNECTIONS,
            MAX_CONNECTIONS,
            **{**db_config, "connect_timeout": CONNECTION_TIMEOUT},
        )
        _pool_config = db_config
        logger.info(
            "Database connection pool initialized: min=%d, max=%d, timeout=%ds, host=%s",
            MIN_CONNECTIONS,
            MAX_CONNECTIONS,
            CONNECTION_TIMEOUT,
            db_config.get("host"),
        )
        return _pool


def _connect_with_retry(db_config: dict, use_pool: bool):
    """
    Get a connection, retrying with exponential backoff.

    Raises:
        psycopg2.OperationalError: If all retries fail
        pool.PoolError: If the pool stays exhausted
    """
    last_exception: Exception | None = None

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            if use_pool:
                return _get_pool(db_config).getconn()
            return psycopg2.connect(**{**db_config, "connect_timeout": CONNECTION_TIMEOUT})
        except (pool.PoolError, psycopg2.OperationalError) as exc:
            last_exception = exc
            if attempt < MAX_RETRIES:
                delay = RETRY_DELAY_BASE ** min(attempt, 3)
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s. Retrying in %.1fs...",
                    attempt,
                    MAX_RETRIES,
                    exc,
                    delay,
                )
                time.sleep(delay)
            else:
                logger.error("Database connection failed after %d attempts: %s", MAX_RETRIES, exc)

    raise last_exception


class DatabaseConnection:
    """
    Context manager for database connections with automatic cleanup.

    Pooled connections are returned to the pool on exit, direct connections
    are closed. Exceptions inside the block are never suppressed; the caller
    is responsible for commit/rollback.
    """

    def __init__(self, db_config: dict, use_pool: bool | None = None):
        self.db_config = db_config
        self.conn = None
        self._use_pool = USE_CONNECTION_POOLING if use_pool is None else use_pool

    @staticmethod
    def _is_connection_valid(conn) -> bool:
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return True
        except psycopg2.Error:
            return False

    def __enter__(self):
        self.conn = _connect_with_retry(self.db_config, self._use_pool)

        if self._use_pool and not self._is_connection_valid(self.conn):
            logger.warning("Stale pooled connection detected, opening a direct connection")
            _get_pool(self.db_config).putconn(self.conn, close=True)
            self.conn = _connect_with_retry(self.db_config, use_pool=False)
            self._use_pool = False

        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn is None:
            return False
        try:
            if exc_type is not None and not self.conn.closed:
                self.conn.rollback()
            if self._use_pool:
                _get_pool(self.db_config).putconn(self.conn)
            else:
                self.conn.close()
        except psycopg2.Error as exc:
            logger.error("Error cleaning up connection: %s", exc, exc_info=True)
        finally:
            self.conn = None
        return False


def get_db_connection(db_config: dict) -> DatabaseConnection:
    """Main entry point for all storage classes (use with a 'with' statement)."""
    return DatabaseConnection(db_config)


def close_all_connections() -> None:
    """Close all pooled connections (call on application shutdown)."""
    global _pool, _pool_config

    with _pool_lock:
        if _pool is not None:
            logger.info("Closing all database connections in pool")
            _pool.closeall()
            _pool = None
            _pool_config = None


def get_pool_stats() -> dict:
    if not USE_CONNECTION_POOLING or _pool is None:
        return {"pooling_enabled": USE_CONNECTION_POOLING, "pool_initialized": False}
    return {
        "pooling_enabled": True,
        "pool_initialized": True,
        "min_connections": MIN_CONNECTIONS,
        "max_connections": MAX_CONNECTIONS,
        "connection_timeout": CONNECTION_TIMEOUT,
        "max_retries": MAX_RETRIES,
    }
