"""
Database storage submodule.

Contains all runtime storage classes for database operations.
"""

from db.storage.recordings import RecordingStorage, DatabaseError
from db.storage.transcriptions import TranscriptionStorage
from db.storage.sync_connections import SyncConnectionStorage
from db.storage.user_settings import UserSettings, UserSettingsStorage
from db.storage.api_credentials import ApiCredentialStorage

__all__ = [
    "RecordingStorage",
    "DatabaseError",
    "TranscriptionStorage",
    "SyncConnectionStorage",
    "UserSettings",
    "UserSettingsStorage",
    "ApiCredentialStorage",
]
