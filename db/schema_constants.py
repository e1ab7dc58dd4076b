"""
Schema constants for recording pipeline tables.

Schema is configurable via DB_SCHEMA env variable (default: public).
"""

import os
from dotenv import load_dotenv

# Load environment variables BEFORE reading DB_SCHEMA
load_dotenv()

SCHEMA = os.getenv("DB_SCHEMA", "public")


# =============================================================================
# TABLE NAMES
# =============================================================================

RECORDINGS_TABLE = "recordings"
RECORDINGS_FULL = f"{SCHEMA}.{RECORDINGS_TABLE}"

TRANSCRIPTIONS_TABLE = "transcriptions"
TRANSCRIPTIONS_FULL = f"{SCHEMA}.{TRANSCRIPTIONS_TABLE}"

PLAUD_CONNECTIONS_TABLE = "plaud_connections"
PLAUD_CONNECTIONS_FULL = f"{SCHEMA}.{PLAUD_CONNECTIONS_TABLE}"

PLAUD_DEVICES_TABLE = "plaud_devices"
PLAUD_DEVICES_FULL = f"{SCHEMA}.{PLAUD_DEVICES_TABLE}"

USER_SETTINGS_TABLE = "user_settings"
USER_SETTINGS_FULL = f"{SCHEMA}.{USER_SETTINGS_TABLE}"

API_CREDENTIALS_TABLE = "api_credentials"
API_CREDENTIALS_FULL = f"{SCHEMA}.{API_CREDENTIALS_TABLE}"

USERS_TABLE = "users"
USERS_FULL = f"{SCHEMA}.{USERS_TABLE}"


# =============================================================================
# SYNTHETIC PLAUD FILE ID PREFIXES (locally created recordings)
# =============================================================================

SPLIT_PREFIX = "split-"
SILENCE_REMOVED_PREFIX = "silence-removed-"
UPLOADED_PREFIX = "uploaded-"

LOCAL_ORIGIN_PREFIXES = (SPLIT_PREFIX, SILENCE_REMOVED_PREFIX, UPLOADED_PREFIX)
