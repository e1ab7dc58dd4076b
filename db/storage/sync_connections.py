"""Storage class for per-user Plaud connections (encrypted bearer token + API base) and their devices."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db.connection_pool import get_db_connection
from db.db_config import get_db_config
from db.schema_constants import PLAUD_CONNECTIONS_FULL, PLAUD_DEVICES_FULL
from db.storage.recordings import DatabaseError

logger = logging.getLogger(__name__)


class SyncConnectionStorage:

    def __init__(self, db_config: Optional[dict] = None) -> None:
        self.db_config = db_config or get_db_config()

    def _get_connection(self):
        return get_db_connection(self.db_config)

    async def get_connection_for_user(self, user_id: str) -> Optional[dict[str, Any]]:
        """
        Get the user's Plaud connection.

        Returns:
            Dict with id, user_id, bearer_token (encrypted), api_base, last_sync or None
        """
        if not user_id:
            return None
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"""
                        SELECT id, user_id, bearer_token, api_base, last_sync
                        FROM {PLAUD_CONNECTIONS_FULL}
                        WHERE user_id = %s
                        LIMIT 1
                        """,
                        (user_id,),
                    )
                    row = cur.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching Plaud connection for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch Plaud connection for {user_id}") from exc

    async def touch_last_sync(self, connection_id: str) -> None:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"UPDATE {PLAUD_CONNECTIONS_FULL} SET last_sync = NOW(), updated_at = NOW() WHERE id = %s",
                        (connection_id,),
                    )
                conn.commit()
        except psycopg2.Error as exc:
            logger.error("Error updating last_sync for connection %s: %s", connection_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to update connection {connection_id}") from exc

    async def upsert_connection(self, user_id: str, bearer_token: str, api_base: str) -> str:
        """
        Create or replace the user's connection.

        Args:
            bearer_token: Already encrypted token

        Returns:
            Connection id
        """
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO {PLAUD_CONNECTIONS_FULL} (user_id, bearer_token, api_base)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (user_id) DO UPDATE
                        SET bearer_token = EXCLUDED.bearer_token,
                            api_base = EXCLUDED.api_base,
                            updated_at = NOW()
                        RETURNING id
                        """,
                        (user_id, bearer_token, api_base),
                    )
                    connection_id = cur.fetchone()[0]
                conn.commit()
                logger.info("Saved Plaud connection %s for user %s", connection_id, user_id)
                return str(connection_id)
        except psycopg2.Error as exc:
            logger.error("Error saving Plaud connection for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to save Plaud connection for {user_id}") from exc

    async def upsert_devices(self, user_id: str, devices: Iterable[dict[str, Any]]) -> int:
        """Record the user's devices, keyed by serial number. Returns the number written."""
        rows = [
            (user_id, device["sn"], device.get("name") or "", device.get("model") or "", device.get("version_number"))
            for device in devices
        ]
        if not rows:
            return 0
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    for row in rows:
                        cur.execute(
                            f"""
                            INSERT INTO {PLAUD_DEVICES_FULL} (user_id, serial_number, name, model, version_number)
                            VALUES (%s, %s, %s, %s, %s)
                            ON CONFLICT (user_id, serial_number) DO UPDATE
                            SET name = EXCLUDED.name,
                                model = EXCLUDED.model,
                                version_number = EXCLUDED.version_number,
                                updated_at = NOW()
                            """,
                            row,
                        )
                conn.commit()
        except psycopg2.Error as exc:
            logger.error("Error saving Plaud devices for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to save Plaud devices for {user_id}") from exc
        return len(rows)
