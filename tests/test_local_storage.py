"""
Local Storage Tests.

Round trip through the filesystem provider and path traversal rejection.
"""

import pytest

from storage.base import StorageError
from storage.factory import create_storage_provider
from storage.local import LocalStorage


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(base_dir=str(tmp_path / "blobs"))


class TestLocalStorage:

    async def test_upload_download_delete(self, storage):
        key = await storage.upload_file("user-1/abc.mp3", b"audio", "audio/mpeg")

        assert key == "user-1/abc.mp3"
        assert await storage.download_file(key) == b"audio"

        await storage.delete_file(key)
        with pytest.raises(StorageError):
            await storage.download_file(key)

    async def test_upload_overwrites(self, storage):
        await storage.upload_file("user-1/abc.mp3", b"v1", "audio/mpeg")
        await storage.upload_file("user-1/abc.mp3", b"v2", "audio/mpeg")

        assert await storage.download_file("user-1/abc.mp3") == b"v2"

    @pytest.mark.parametrize("key", [
        "../outside.mp3",
        "user-1/../../outside.mp3",
        "/etc/passwd",
        "user-1\\..\\..\\outside.mp3",
        "user-1/a\0.mp3",
        "",
    ])
    async def test_traversal_rejected(self, storage, key):
        with pytest.raises(StorageError):
            await storage.upload_file(key, b"x", "audio/mpeg")

    async def test_signed_url_points_at_audio_route(self, storage):
        url = await storage.get_signed_url("user-1/abc.mp3", 3600)

        assert url == "/recordings/audio/user-1%2Fabc.mp3"

    async def test_connection_check(self, storage):
        assert await storage.test_connection() is True


class TestStorageFactory:

    def test_local_provider(self):
        assert create_storage_provider("local").storage_type == "local"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_storage_provider("ftp")
