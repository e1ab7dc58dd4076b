"""
Recording Storage
=================

Reads and writes rows of the recordings table.

Remote-origin rows are inserted/updated by the sync engine. Locally derived
rows (silence removal, split parts) go through upsert_derived_recordings,
which registers every row in a single transaction and refuses to overwrite a
row owned by another user.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from db.connection_pool import get_db_connection
from db.db_config import get_db_config
from db.schema_constants import RECORDINGS_FULL

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Raised when a recordings query fails."""


RECORDING_COLUMNS = (
    "user_id",
    "device_sn",
    "plaud_file_id",
    "filename",
    "duration",
    "start_time",
    "end_time",
    "filesize",
    "file_md5",
    "storage_type",
    "storage_path",
    "downloaded_at",
    "plaud_version",
    "timezone",
    "zonemins",
    "scene",
    "is_trash",
)

# Columns refreshed when an existing row is re-registered
_UPSERT_UPDATE_COLUMNS = (
    "filename",
    "duration",
    "start_time",
    "end_time",
    "filesize",
    "file_md5",
    "storage_type",
    "storage_path",
    "downloaded_at",
    "plaud_version",
)


def _row_values(recording: dict[str, Any]) -> tuple:
    return tuple(recording.get(column) for column in RECORDING_COLUMNS)


class RecordingStorage:
    """Storage class for recordings."""

    def __init__(self, db_config: Optional[dict] = None) -> None:
        self.db_config = db_config or get_db_config()

    def _get_connection(self):
        return get_db_connection(self.db_config)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_recording(self, user_id: str, recording_id: str) -> Optional[dict[str, Any]]:
        """Get a recording by id, scoped to its owner."""
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"SELECT * FROM {RECORDINGS_FULL} WHERE id = %s AND user_id = %s",
                        (recording_id, user_id),
                    )
                    row = cur.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching recording %s: %s", recording_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch recording {recording_id}") from exc

    async def get_by_plaud_file_id(self, plaud_file_id: str) -> Optional[dict[str, Any]]:
        """
        Get a recording by its remote id.

        plaud_file_id is globally unique, so the lookup is not owner-scoped.
        """
        try:
            with self._get_connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(
                        f"SELECT * FROM {RECORDINGS_FULL} WHERE plaud_file_id = %s LIMIT 1",
                        (plaud_file_id,),
                    )
                    row = cur.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as exc:
            logger.error("Error fetching recording by plaud id %s: %s", plaud_file_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to fetch recording {plaud_file_id}") from exc

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_recording(self, recording: dict[str, Any]) -> str:
        """Insert a new recording row. Returns the generated id."""
        columns = ", ".join(RECORDING_COLUMNS)
        placeholders = ", ".join(["%s"] * len(RECORDING_COLUMNS))
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"INSERT INTO {RECORDINGS_FULL} ({columns}) VALUES ({placeholders}) RETURNING id",
                        _row_values(recording),
                    )
                    recording_id = cur.fetchone()[0]
                conn.commit()
                logger.info("Inserted recording %s (plaud_file_id=%s)", recording_id, recording.get("plaud_file_id"))
                return str(recording_id)
        except psycopg2.Error as exc:
            logger.error("Error inserting recording %s: %s", recording.get("plaud_file_id"), exc, exc_info=True)
            raise DatabaseError("Failed to insert recording") from exc

    async def update_recording(self, recording_id: str, recording: dict[str, Any]) -> None:
        """Update an existing row in place with refreshed metadata."""
        fields = [column for column in RECORDING_COLUMNS if column in recording and column != "user_id"]
        if not fields:
            return
        assignments = ", ".join(f"{column} = %s" for column in fields)
        values = [recording[column] for column in fields]
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"UPDATE {RECORDINGS_FULL} SET {assignments}, updated_at = NOW() WHERE id = %s",
                        (*values, recording_id),
                    )
                conn.commit()
                logger.debug("Updated recording %s", recording_id)
        except psycopg2.Error as exc:
            logger.error("Error updating recording %s: %s", recording_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to update recording {recording_id}") from exc

    async def upsert_derived_recordings(
        self, recordings: Iterable[dict[str, Any]]
    ) -> Optional[list[tuple[str, Optional[str]]]]:
        """
        Register locally derived recordings in one transaction.

        Each row is an INSERT ... ON CONFLICT (plaud_file_id) DO UPDATE scoped
        to the same owner. Registrations of one id are serialized with an
        advisory lock, and the existing row, if any, is read under FOR UPDATE
        so the storage_path it pointed at before the update can be handed
        back to the caller for deletion. A row that returns nothing belongs to another
        user: the transaction is rolled back and None is returned so the
        caller can discard the blobs it uploaded.

        Returns:
            (recording_id, replaced_storage_path) per row in input order, where
            replaced_storage_path is None for newly inserted rows; or None on an
            ownership conflict
        """
        rows = list(recordings)
        columns = ", ".join(RECORDING_COLUMNS)
        placeholders = ", ".join(["%s"] * len(RECORDING_COLUMNS))
        updates = ", ".join(f"{column} = EXCLUDED.{column}" for column in _UPSERT_UPDATE_COLUMNS)
        # Serializes concurrent registrations of one synthetic id, including the
        # first insert where there is no row yet for FOR UPDATE to lock
        advisory_lock_query = "SELECT pg_advisory_xact_lock(hashtext(%s))"
        lock_query = (
            f"SELECT storage_path FROM {RECORDINGS_FULL} "
            f"WHERE plaud_file_id = %s AND user_id = %s FOR UPDATE"
        )
        upsert_query = (
            f"INSERT INTO {RECORDINGS_FULL} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT (plaud_file_id) DO UPDATE SET {updates}, updated_at = NOW() "
            f"WHERE {RECORDINGS_FULL}.user_id = EXCLUDED.user_id "
            f"RETURNING id"
        )

        registered: list[tuple[str, Optional[str]]] = []
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    for row in rows:
                        cur.execute(advisory_lock_query, (row.get("plaud_file_id"),))
                        cur.execute(lock_query, (row.get("plaud_file_id"), row.get("user_id")))
                        previous = cur.fetchone()
                        cur.execute(upsert_query, _row_values(row))
                        result = cur.fetchone()
                        if result is None:
                            conn.rollback()
                            logger.warning(
                                "Derived recording %s is owned by another user, rolled back",
                                row.get("plaud_file_id"),
                            )
                            return None
                        replaced = previous[0] if previous else None
                        if replaced == row.get("storage_path"):
                            replaced = None
                        registered.append((str(result[0]), replaced))
                conn.commit()
        except psycopg2.Error as exc:
            logger.error("Error registering derived recordings: %s", exc, exc_info=True)
            raise DatabaseError("Failed to register derived recordings") from exc

        logger.info("Registered %d derived recording(s)", len(registered))
        return registered

    async def set_filename_modified(self, recording_id: str, modified: bool) -> None:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"UPDATE {RECORDINGS_FULL} SET filename_modified = %s, updated_at = NOW() WHERE id = %s",
                        (modified, recording_id),
                    )
                conn.commit()
        except psycopg2.Error as exc:
            logger.error("Error updating filename flag for %s: %s", recording_id, exc, exc_info=True)
            raise DatabaseError(f"Failed to update recording {recording_id}") from exc
