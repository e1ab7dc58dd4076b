"""Storage class for per-user speech-to-text API credentials."""

from __future__ import annotations

import logging
from typing import Any, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db.connection_pool import get_db_connection
from db.db_config import get_db_config
from db.schema_constants import API_CREDENTIALS_FULL
from db.storage.recordings import DatabaseError

logger = logging.getLogger(__name__)


class ApiCredentialStorage:

    def __init__(self, db_config: Optional[dict] = None) -> None:
        self.db_config = db_config or get_db_config()

    def _get_connection(self):
        return get_db_connection(self.db_config)

    async def get_transcription_credentials(self, user_id: str) -> Optional[dict[str, Any]]:
        """
        Get the user's transcription credentials.

        Prefers the row flagged is_default_transcription, otherwise the first
        configured provider. api_key is returned encrypted.
        """
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"""
                        SELECT id, provider, api_key, base_url, default_model, is_default_transcription
                        FROM {API_CREDENTIALS_FULL}
                        WHERE user_id = %s
                        ORDER BY is_default_transcription DESC, created_at ASC
                        LIMIT 1
                        """,
                        (user_id,),
                    )
                    row = cur.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching API credentials for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch API credentials for {user_id}") from exc
