"""
User settings storage.

Settings are read-only for the pipeline. A user without a user_settings row
gets the defaults of UserSettings.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db.connection_pool import get_db_connection
from db.db_config import get_db_config
from db.schema_constants import USER_SETTINGS_FULL, USERS_FULL
from db.storage.recordings import DatabaseError

logger = logging.getLogger(__name__)


@dataclass
class UserSettings:
    auto_transcribe: bool = False
    email_notifications: bool = False
    bark_notifications: bool = False
    notification_email: Optional[str] = None
    bark_push_url: Optional[str] = None
    silence_threshold_db: float = -40.0
    silence_duration_seconds: float = 1.0
    split_segment_minutes: int = 60
    default_transcription_language: Optional[str] = None
    sync_title_to_plaud: bool = False

    @classmethod
    def from_row(cls, row: Optional[dict[str, Any]]) -> "UserSettings":
        """Build settings from a DB row, NULL columns fall back to defaults."""
        settings = cls()
        if not row:
            return settings
        for field in fields(cls):
            value = row.get(field.name)
            if value is not None:
                setattr(settings, field.name, value)
        return settings


class UserSettingsStorage:

    def __init__(self, db_config: Optional[dict] = None) -> None:
        self.db_config = db_config or get_db_config()

    def _get_connection(self):
        return get_db_connection(self.db_config)

    async def get_settings(self, user_id: str) -> UserSettings:
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"SELECT * FROM {USER_SETTINGS_FULL} WHERE user_id = %s LIMIT 1",
                        (user_id,),
                    )
                    row = cur.fetchone()
        except psycopg2.Error as exc:
            logger.error("Error fetching settings for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch settings for {user_id}") from exc
        return UserSettings.from_row(dict(row) if row else None)

    async def get_user_email(self, user_id: str) -> Optional[str]:
        """Account e-mail, used when no notification_email is configured."""
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"SELECT email FROM {USERS_FULL} WHERE id = %s", (user_id,))
                    row = cur.fetchone()
                    return row[0] if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching email for %s: %s", user_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch user {user_id}") from exc
