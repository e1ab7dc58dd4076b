"""
Plaud cloud integration.

Contains:
- client: Retrying async API client
- connect: Validate and save a user's bearer token
- models: Pydantic response models
- plaud_config: Servers, retry policy, sync paging limits
- title_sync: Push filenames back to Plaud
"""

from plaud.client import PlaudApiError, PlaudClient, create_plaud_client, validate_api_base
from plaud.connect import ConnectResult, connect_plaud
from plaud.models import PlaudRecording, PlaudRecordingsResponse, PlaudTempUrlResponse

__all__ = [
    "PlaudApiError",
    "PlaudClient",
    "create_plaud_client",
    "validate_api_base",
    "ConnectResult",
    "connect_plaud",
    "PlaudRecording",
    "PlaudRecordingsResponse",
    "PlaudTempUrlResponse",
]
