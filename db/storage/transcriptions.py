"""Storage class for the transcriptions table (one row per recording)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db.connection_pool import get_db_connection
from db.db_config import get_db_config
from db.schema_constants import TRANSCRIPTIONS_FULL
from db.storage.recordings import DatabaseError

logger = logging.getLogger(__name__)


class TranscriptionStorage:
    """Reads and writes transcriptions, keyed on recording_id."""

    def __init__(self, db_config: Optional[dict] = None) -> None:
        self.db_config = db_config or get_db_config()

    def _get_connection(self):
        return get_db_connection(self.db_config)

    async def get_by_recording(self, recording_id: str) -> Optional[dict[str, Any]]:
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"SELECT * FROM {TRANSCRIPTIONS_FULL} WHERE recording_id = %s LIMIT 1",
                        (recording_id,),
                    )
                    row = cur.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching transcription for %s: %s", recording_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch transcription for {recording_id}") from exc

    async def insert_transcription(
        self,
        *,
        recording_id: str,
        user_id: str,
        text: str,
        detected_language: Optional[str],
        provider: str,
        model: str,
        transcription_type: str = "server",
    ) -> str:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO {TRANSCRIPTIONS_FULL}
                            (recording_id, user_id, text, detected_language, transcription_type, provider, model)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (recording_id, user_id, text, detected_language, transcription_type, provider, model),
                    )
                    transcription_id = cur.fetchone()[0]
                conn.commit()
                logger.info("Saved transcription %s for recording %s", transcription_id, recording_id)
                return str(transcription_id)
        except psycopg2.Error as exc:
            logger.error("Error inserting transcription for %s: %s", recording_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to save transcription for {recording_id}") from exc

    async def update_transcription(
        self,
        transcription_id: str,
        *,
        text: str,
        detected_language: Optional[str],
        provider: str,
        model: str,
    ) -> None:
        """Overwrite a stale (empty) transcription row."""
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        UPDATE {TRANSCRIPTIONS_FULL}
                        SET text = %s, detected_language = %s, provider = %s, model = %s
                        WHERE id = %s
                        """,
                        (text, detected_language, provider, model, transcription_id),
                    )
                conn.commit()
        except psycopg2.Error as exc:
            logger.error("Error updating transcription %s: %s", transcription_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to update transcription {transcription_id}") from exc
