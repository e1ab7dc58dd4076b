"""
Local filesystem storage provider.

Blobs live under a base directory. Keys are validated so a key can never
resolve outside that directory. Writes go to a temp file in the target
directory and are moved into place with os.replace.
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from storage.base import StorageError, StorageProvider
from storage.storage_config import LOCAL_AUDIO_ROUTE, LOCAL_STORAGE_PATH

logger = logging.getLogger(__name__)


class LocalStorage(StorageProvider):
    """Stores recordings on the local filesystem"""

    storage_type = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or LOCAL_STORAGE_PATH).resolve()
        logger.info("Local storage initialized: %s", self.base_dir)

    def _get_file_path(self, key: str) -> Path:
        """Resolve a key to a path inside base_dir, rejecting traversal."""
        normalized = key.replace("\\", "/")
        if not normalized or ".." in normalized or normalized.startswith("/") or "\0" in normalized:
            raise StorageError(f"Invalid file key: path traversal detected ({key!r})")

        resolved = (self.base_dir / normalized).resolve()
        if resolved == self.base_dir or self.base_dir not in resolved.parents:
            raise StorageError(f"Invalid file key: path outside storage directory ({key!r})")
        return resolved

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    async def upload_file(self, key: str, data: bytes, content_type: str) -> str:
        path = self._get_file_path(key)
        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as exc:
            raise StorageError(f"Failed to upload file to local storage: {exc}") from exc
        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type)
        return key

    async def download_file(self, key: str) -> bytes:
        path = self._get_file_path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise StorageError(f"Failed to download file from local storage: {exc}") from exc

    async def delete_file(self, key: str) -> None:
        path = self._get_file_path(key)
        try:
            await asyncio.to_thread(path.unlink)
        except OSError as exc:
            raise StorageError(f"Failed to delete file from local storage: {exc}") from exc
        logger.info("Deleted %s from local storage", key)

    async def get_signed_url(self, key: str, expires_in: int) -> str:
        # Local blobs are served by the audio route, which does its own auth
        return f"{LOCAL_AUDIO_ROUTE}/{quote(key, safe='')}"

    async def test_connection(self) -> bool:
        key = f"test-{int(time.time() * 1000)}.txt"
        try:
            await asyncio.to_thread(self.base_dir.mkdir, parents=True, exist_ok=True)
            await self.upload_file(key, b"test", "text/plain")
            await self.delete_file(key)
            return True
        except (OSError, StorageError) as exc:
            logger.warning("Local storage test failed: %s", exc)
            return False
