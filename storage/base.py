"""
Blob storage provider interface.

Recordings (original downloads and derived audio) are stored under
key-addressed blobs. Keys are owner-scoped ("{user_id}/{plaud_file_id}.mp3")
and always use forward slashes.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised when a blob operation fails."""


class StorageProvider(ABC):
    """Key-addressed blob store used by sync, transforms and transcription."""

    storage_type: str = ""

    @abstractmethod
    async def upload_file(self, key: str, data: bytes, content_type: str) -> str:
        """Store data under key, overwriting any existing blob. Returns the key."""

    @abstractmethod
    async def download_file(self, key: str) -> bytes:
        """Return the blob's bytes. Raises StorageError when missing."""

    @abstractmethod
    async def delete_file(self, key: str) -> None:
        ...

    @abstractmethod
    async def get_signed_url(self, key: str, expires_in: int) -> str:
        """URL the client can fetch the audio from, valid for expires_in seconds."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """True when the backend accepts reads and writes."""
