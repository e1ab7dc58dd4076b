"""
Database Migration: Create recording pipeline tables

Creates users (minimal, owned by the auth layer), plaud_connections,
plaud_devices, recordings, transcriptions, user_settings and api_credentials,
plus the indexes the sync engine and dashboard queries rely on.

Usage:
    python db/migrations/create_recording_tables.py

Safety:
    - Uses CREATE TABLE / INDEX IF NOT EXISTS (idempotent)
    - Uses ADD COLUMN IF NOT EXISTS for columns added after the first release
    - Rolls back on error
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import psycopg2
from dotenv import load_dotenv

from db.db_config import get_db_config, validate_db_config
from db.schema_constants import (
    SCHEMA,
    USERS_FULL,
    PLAUD_CONNECTIONS_FULL,
    PLAUD_DEVICES_FULL,
    RECORDINGS_FULL,
    TRANSCRIPTIONS_FULL,
    USER_SETTINGS_FULL,
    API_CREDENTIALS_FULL,
)

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


STATEMENTS = [
    (
        "users",
        f"""
        CREATE TABLE IF NOT EXISTS {USERS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "plaud_connections",
        f"""
        CREATE TABLE IF NOT EXISTS {PLAUD_CONNECTIONS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT NOT NULL UNIQUE REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            bearer_token TEXT NOT NULL,
            api_base TEXT NOT NULL DEFAULT 'https://api.plaud.ai',
            last_sync TIMESTAMP,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "plaud_devices",
        f"""
        CREATE TABLE IF NOT EXISTS {PLAUD_DEVICES_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT NOT NULL REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            serial_number VARCHAR(255) NOT NULL,
            name TEXT NOT NULL DEFAULT '',
            model VARCHAR(100) NOT NULL DEFAULT '',
            version_number INTEGER,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
            UNIQUE (user_id, serial_number)
        )
        """,
    ),
    (
        "recordings",
        f"""
        CREATE TABLE IF NOT EXISTS {RECORDINGS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT NOT NULL REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            device_sn VARCHAR(255) NOT NULL,
            plaud_file_id VARCHAR(255) NOT NULL UNIQUE,
            filename TEXT NOT NULL,
            duration INTEGER NOT NULL,
            start_time TIMESTAMP NOT NULL,
            end_time TIMESTAMP NOT NULL,
            filesize INTEGER NOT NULL,
            file_md5 VARCHAR(32) NOT NULL,
            storage_type VARCHAR(10) NOT NULL,
            storage_path TEXT NOT NULL,
            downloaded_at TIMESTAMP,
            plaud_version VARCHAR(50) NOT NULL,
            timezone INTEGER,
            zonemins INTEGER,
            scene INTEGER,
            is_trash BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "recordings.filename_modified",
        f"""
        ALTER TABLE {RECORDINGS_FULL}
        ADD COLUMN IF NOT EXISTS filename_modified BOOLEAN NOT NULL DEFAULT FALSE
        """,
    ),
    (
        "transcriptions",
        f"""
        CREATE TABLE IF NOT EXISTS {TRANSCRIPTIONS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            recording_id TEXT NOT NULL UNIQUE REFERENCES {RECORDINGS_FULL}(id) ON DELETE CASCADE,
            user_id TEXT NOT NULL REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            text TEXT NOT NULL,
            detected_language VARCHAR(10),
            transcription_type VARCHAR(10) NOT NULL DEFAULT 'server',
            provider VARCHAR(100) NOT NULL,
            model VARCHAR(100) NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "user_settings",
        f"""
        CREATE TABLE IF NOT EXISTS {USER_SETTINGS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT NOT NULL UNIQUE REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            auto_transcribe BOOLEAN NOT NULL DEFAULT FALSE,
            email_notifications BOOLEAN NOT NULL DEFAULT FALSE,
            bark_notifications BOOLEAN NOT NULL DEFAULT FALSE,
            notification_email TEXT,
            bark_push_url TEXT,
            silence_threshold_db REAL NOT NULL DEFAULT -40,
            silence_duration_seconds REAL NOT NULL DEFAULT 1.0,
            split_segment_minutes INTEGER NOT NULL DEFAULT 60,
            default_transcription_language VARCHAR(10),
            sync_title_to_plaud BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "api_credentials",
        f"""
        CREATE TABLE IF NOT EXISTS {API_CREDENTIALS_FULL} (
            id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
            user_id TEXT NOT NULL REFERENCES {USERS_FULL}(id) ON DELETE CASCADE,
            provider VARCHAR(100) NOT NULL,
            api_key TEXT NOT NULL,
            base_url TEXT,
            default_model VARCHAR(100),
            is_default_transcription BOOLEAN NOT NULL DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMP NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "recordings_user_id_idx",
        f"CREATE INDEX IF NOT EXISTS recordings_user_id_idx ON {RECORDINGS_FULL}(user_id)",
    ),
    (
        "recordings_user_id_start_time_idx",
        f"CREATE INDEX IF NOT EXISTS recordings_user_id_start_time_idx ON {RECORDINGS_FULL}(user_id, start_time)",
    ),
    (
        "transcriptions_user_id_idx",
        f"CREATE INDEX IF NOT EXISTS transcriptions_user_id_idx ON {TRANSCRIPTIONS_FULL}(user_id)",
    ),
]


def create_recording_tables() -> bool:
    """
    Create all pipeline tables in one transaction.

    This function is idempotent - safe to run multiple times.
    """
    ok, message = validate_db_config()
    if not ok:
        logger.error("✗ %s", message)
        return False

    conn = None
    try:
        conn = psycopg2.connect(**get_db_config())
        with conn.cursor() as cur:
            logger.info("Creating recording tables in schema: %s", SCHEMA)
            cur.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")
            for name, statement in STATEMENTS:
                cur.execute(statement)
                logger.info("✓ %s created (or already exists)", name)
        conn.commit()
        logger.info("✓ Migration completed successfully!")
        return True
    except psycopg2.Error as e:
        logger.error("✗ Migration failed: %s", e, exc_info=True)
        if conn:
            conn.rollback()
        return False
    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    sys.exit(0 if create_recording_tables() else 1)
