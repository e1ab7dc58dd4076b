"""
Plaud cloud API configuration.

Server list, retry policy and sync paging limits.
"""

import os
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# SERVERS
# =============================================================================

PLAUD_SERVERS = {
    "global": {
        "label": "Global (api.plaud.ai)",
        "api_base": "https://api.plaud.ai",
    },
    "eu": {
        "label": "EU - Frankfurt (api-euc1.plaud.ai)",
        "api_base": "https://api-euc1.plaud.ai",
    },
}

DEFAULT_SERVER_KEY = "global"
DEFAULT_PLAUD_API_BASE = PLAUD_SERVERS[DEFAULT_SERVER_KEY]["api_base"]

# Stored api_base values must point at one of these hosts
ALLOWED_PLAUD_HOSTS = frozenset(urlparse(server["api_base"]).hostname for server in PLAUD_SERVERS.values())


# =============================================================================
# HTTP
# =============================================================================

MAX_RETRIES = int(os.getenv("PLAUD_MAX_RETRIES", "3"))
INITIAL_RETRY_DELAY = float(os.getenv("PLAUD_INITIAL_RETRY_DELAY", "1.0"))  # seconds, doubles per retry
REQUEST_TIMEOUT = float(os.getenv("PLAUD_REQUEST_TIMEOUT", "30"))
DOWNLOAD_TIMEOUT = float(os.getenv("PLAUD_DOWNLOAD_TIMEOUT", "300"))


# =============================================================================
# SYNC PAGING
# =============================================================================

SYNC_PAGE_SIZE = 50
SYNC_MAX_PAGES = 20
SYNC_BATCH_SIZE = 5
# Stop after this many consecutive pages with nothing new or updated
SYNC_MAX_IDLE_PAGES = 2
