"""
Database module.

Contains:
- db_config: Database configuration (local/prod toggle)
- connection_pool: Connection pool manager
- schema_constants: Schema and table names
- storage/: All storage classes for DB operations
"""

from db.db_config import (
    get_db_config,
    is_local_db,
    validate_db_config,
)
from db.connection_pool import (
    get_db_connection,
    close_all_connections,
    get_pool_stats,
    DatabaseConnection,
)

__all__ = [
    # Config
    "get_db_config",
    "is_local_db",
    "validate_db_config",
    # Pool
    "get_db_connection",
    "close_all_connections",
    "get_pool_stats",
    "DatabaseConnection",
]
