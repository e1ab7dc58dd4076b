"""
Shared fixtures and in-memory fakes.

The fakes mirror the async interfaces of the db.storage classes, the blob
storage providers, the ffmpeg adapter and the Plaud client closely enough
for the pipeline code to run unchanged against them.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.storage.user_settings import UserSettings
from plaud.models import PlaudDevice, PlaudDeviceListResponse, PlaudRecording, PlaudRecordingsResponse
from storage.base import StorageError, StorageProvider

# Test encryption key (generated for testing only)
TEST_ENCRYPTION_KEY = "mDTmNQg6OxP_qMsdahXWWqujA6BfpPjYyn_YkpXeo0o="

BASE_TIME = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def set_encryption_key(monkeypatch):
    """Every test runs with a valid Fernet key."""
    monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)


# =============================================================================
# Builders
# =============================================================================

def make_plaud_recording(file_id: str, version_ms: int = 1000, **overrides: Any) -> PlaudRecording:
    start = overrides.pop("start_time", BASE_TIME)
    duration = overrides.pop("duration", 60_000)
    data = {
        "id": file_id,
        "filename": f"Recording {file_id}",
        "duration": duration,
        "start_time": start,
        "end_time": start + timedelta(milliseconds=duration),
        "filesize": 1024,
        "file_md5": f"md5-{file_id}",
        "serial_number": "SN-001",
        "version_ms": version_ms,
    }
    data.update(overrides)
    return PlaudRecording(**data)


def make_recording_row(recording_id: str, user_id: str = "user-1", **overrides: Any) -> dict[str, Any]:
    duration = overrides.pop("duration", 60_000)
    start = overrides.pop("start_time", BASE_TIME)
    row = {
        "id": recording_id,
        "user_id": user_id,
        "device_sn": "SN-001",
        "plaud_file_id": f"pf-{recording_id}",
        "filename": "Team Meeting",
        "duration": duration,
        "start_time": start,
        "end_time": start + timedelta(milliseconds=duration),
        "filesize": 4096,
        "file_md5": "abc",
        "storage_type": "local",
        "storage_path": f"{user_id}/pf-{recording_id}.mp3",
        "downloaded_at": BASE_TIME,
        "plaud_version": "1000",
        "timezone": 0,
        "zonemins": 0,
        "scene": 1,
        "is_trash": False,
        "filename_modified": False,
    }
    row.update(overrides)
    return row


# =============================================================================
# Storage fakes
# =============================================================================

class FakeRecordingStorage:
    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.upsert_error: Optional[Exception] = None
        self.insert_error: Optional[Exception] = None
        self._next_id = 0

    def add(self, row: dict[str, Any]) -> dict[str, Any]:
        self.rows[row["id"]] = dict(row)
        return self.rows[row["id"]]

    def _new_id(self) -> str:
        self._next_id += 1
        return f"rec-{self._next_id}"

    async def get_recording(self, user_id: str, recording_id: str) -> Optional[dict[str, Any]]:
        row = self.rows.get(recording_id)
        return dict(row) if row and row["user_id"] == user_id else None

    async def get_by_plaud_file_id(self, plaud_file_id: str) -> Optional[dict[str, Any]]:
        for row in self.rows.values():
            if row["plaud_file_id"] == plaud_file_id:
                return dict(row)
        return None

    async def insert_recording(self, recording: dict[str, Any]) -> str:
        if self.insert_error is not None:
            raise self.insert_error
        recording_id = self._new_id()
        self.rows[recording_id] = {**recording, "id": recording_id}
        return recording_id

    async def update_recording(self, recording_id: str, recording: dict[str, Any]) -> None:
        self.rows[recording_id].update({k: v for k, v in recording.items() if k != "user_id"})

    async def upsert_derived_recordings(self, recordings) -> Optional[list[tuple[str, Optional[str]]]]:
        if self.upsert_error is not None:
            raise self.upsert_error
        rows = list(recordings)
        # All-or-nothing, like the single transaction in RecordingStorage
        for row in rows:
            existing = await self.get_by_plaud_file_id(row["plaud_file_id"])
            if existing and existing["user_id"] != row["user_id"]:
                return None
        registered = []
        for row in rows:
            existing = await self.get_by_plaud_file_id(row["plaud_file_id"])
            if existing:
                replaced = existing["storage_path"]
                self.rows[existing["id"]].update(row)
                registered.append((existing["id"], None if replaced == row["storage_path"] else replaced))
            else:
                registered.append((await self.insert_recording(row), None))
        return registered

    async def set_filename_modified(self, recording_id: str, modified: bool) -> None:
        self.rows[recording_id]["filename_modified"] = modified


class FakeTranscriptionStorage:
    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}

    async def get_by_recording(self, recording_id: str) -> Optional[dict[str, Any]]:
        return self.rows.get(recording_id)

    async def insert_transcription(self, *, recording_id, user_id, text, detected_language, provider, model,
                                   transcription_type="server") -> str:
        self.rows[recording_id] = {
            "id": f"tr-{recording_id}",
            "recording_id": recording_id,
            "user_id": user_id,
            "text": text,
            "detected_language": detected_language,
            "provider": provider,
            "model": model,
            "transcription_type": transcription_type,
        }
        return self.rows[recording_id]["id"]

    async def update_transcription(self, transcription_id, *, text, detected_language, provider, model) -> None:
        for row in self.rows.values():
            if row["id"] == transcription_id:
                row.update(text=text, detected_language=detected_language, provider=provider, model=model)


class FakeCredentialStorage:
    def __init__(self) -> None:
        self.credentials: dict[str, dict[str, Any]] = {}

    async def get_transcription_credentials(self, user_id: str) -> Optional[dict[str, Any]]:
        return self.credentials.get(user_id)


class FakeSettingsStorage:
    def __init__(self) -> None:
        self.settings: dict[str, UserSettings] = {}
        self.emails: dict[str, str] = {}

    async def get_settings(self, user_id: str) -> UserSettings:
        return self.settings.get(user_id) or UserSettings()

    async def get_user_email(self, user_id: str) -> Optional[str]:
        return self.emails.get(user_id)


class FakeConnectionStorage:
    def __init__(self) -> None:
        self.connections: dict[str, dict[str, Any]] = {}
        self.touched: list[str] = []
        self.devices: dict[str, dict[str, dict[str, Any]]] = {}

    async def get_connection_for_user(self, user_id: str) -> Optional[dict[str, Any]]:
        return self.connections.get(user_id)

    async def touch_last_sync(self, connection_id: str) -> None:
        self.touched.append(connection_id)

    async def upsert_connection(self, user_id: str, bearer_token: str, api_base: str) -> str:
        existing = self.connections.get(user_id)
        connection_id = existing["id"] if existing else f"conn-{user_id}"
        self.connections[user_id] = {
            "id": connection_id,
            "user_id": user_id,
            "bearer_token": bearer_token,
            "api_base": api_base,
            "last_sync": existing["last_sync"] if existing else None,
        }
        return connection_id

    async def upsert_devices(self, user_id: str, devices) -> int:
        devices = list(devices)
        self.devices.setdefault(user_id, {}).update({device["sn"]: device for device in devices})
        return len(devices)


class FakeBlobStorage(StorageProvider):
    storage_type = "local"

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.uploads: list[str] = []
        self.deleted: list[str] = []
        self.fail_upload_on: Optional[int] = None

    async def upload_file(self, key: str, data: bytes, content_type: str) -> str:
        if self.fail_upload_on is not None and len(self.uploads) == self.fail_upload_on:
            raise StorageError(f"upload of {key} failed")
        self.blobs[key] = data
        self.uploads.append(key)
        return key

    async def download_file(self, key: str) -> bytes:
        if key not in self.blobs:
            raise StorageError(f"{key} not found")
        return self.blobs[key]

    async def delete_file(self, key: str) -> None:
        self.blobs.pop(key, None)
        self.deleted.append(key)

    async def get_signed_url(self, key: str, expires_in: int) -> str:
        return f"https://blobs.test/{key}?expires={expires_in}"

    async def test_connection(self) -> bool:
        return True


# =============================================================================
# Engine fakes
# =============================================================================

class FakeAudioEngine:
    """Writes canned output files instead of running ffmpeg."""

    def __init__(self, probe_ms: int = 30_000, part_count: int = 3, output: bytes = b"o" * 512) -> None:
        self.probe_ms = probe_ms
        self.part_count = part_count
        self.output = output
        self.silence_calls: list[dict[str, Any]] = []
        self.split_calls: list[int] = []
        self.trim_calls = 0

    async def remove_silence(self, input_path, output_path, *, threshold_db, min_silence_seconds) -> None:
        self.silence_calls.append({"threshold_db": threshold_db, "min_silence_seconds": min_silence_seconds})
        Path(output_path).write_bytes(self.output)

    async def split_segments(self, input_path, output_dir, segment_seconds) -> list[Path]:
        self.split_calls.append(segment_seconds)
        parts = []
        for index in range(self.part_count):
            part = Path(output_dir) / f"part_{index:03d}.ogg"
            part.write_bytes(f"part-{index}".encode())
            parts.append(part)
        return parts

    async def probe_duration_ms(self, path) -> int:
        return self.probe_ms

    async def trim_trailing_silence(self, audio: bytes, storage_path: str) -> bytes:
        self.trim_calls += 1
        return audio


class FakePlaudClient:
    """Serves a fixed remote recording list, newest first."""

    def __init__(self, items: Optional[list[PlaudRecording]] = None) -> None:
        self.items = list(items or [])
        self.page_requests: list[tuple[int, int]] = []
        self.downloads: list[str] = []
        self.download_errors: dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.renamed: list[tuple[str, str]] = []
        self.closed = False
        self.devices: list[PlaudDevice] = [PlaudDevice(sn="SN-001", name="Plaud Note", model="note", version_number=131)]
        self.token_valid = True

    async def __aenter__(self) -> "FakePlaudClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    async def get_recordings(self, skip=0, limit=99999, is_trash=0, sort_by="edit_time", is_desc=True):
        if self.list_error is not None:
            raise self.list_error
        self.page_requests.append((skip, limit))
        return PlaudRecordingsResponse(data_file_list=self.items[skip:skip + limit])

    async def download_recording(self, file_id: str, prefer_opus: bool = True) -> bytes:
        if file_id in self.download_errors:
            raise self.download_errors[file_id]
        self.downloads.append(file_id)
        return f"audio-{file_id}".encode()

    async def update_filename(self, file_id: str, filename: str):
        self.renamed.append((file_id, filename))

    async def list_devices(self) -> PlaudDeviceListResponse:
        return PlaudDeviceListResponse(data_devices=self.devices)

    async def test_connection(self) -> bool:
        return self.token_valid


class FakeQueue:
    def __init__(self) -> None:
        self.jobs: list[tuple[str, str]] = []
        self.running = False

    def enqueue(self, user_id: str, recording_ids) -> int:
        ids = list(recording_ids)
        self.jobs.extend((user_id, recording_id) for recording_id in ids)
        return len(ids)


class FakeNotifier:
    def __init__(self, result: bool = True, error: Optional[Exception] = None) -> None:
        self.result = result
        self.error = error
        self.sent: list[tuple[str, int, list[str]]] = []

    async def send(self, target: str, count: int, names) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append((target, count, list(names)))
        return self.result


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def recordings():
    return FakeRecordingStorage()


@pytest.fixture
def transcriptions():
    return FakeTranscriptionStorage()


@pytest.fixture
def credentials():
    return FakeCredentialStorage()


@pytest.fixture
def settings():
    return FakeSettingsStorage()


@pytest.fixture
def connections():
    return FakeConnectionStorage()


@pytest.fixture
def blob_storage():
    return FakeBlobStorage()


@pytest.fixture
def audio_engine():
    return FakeAudioEngine()
