"""
Manual audio uploads.

Uploaded files become recordings with a synthetic "uploaded-<id>"
plaud_file_id and device_sn "local", so sync and title sync leave them alone.
The blob is written first; if the row cannot be inserted the blob is deleted.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import tempfile
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from db.schema_constants import UPLOADED_PREFIX
from recording.audio_engine import AudioEngine
from storage.base import StorageError, StorageProvider
from utils.audio_formats import AUDIO_MIME_TYPES, DEFAULT_MIME_TYPE
from utils.errors import PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 500 * 1024 * 1024
ACCEPTED_EXTENSIONS = tuple(AUDIO_MIME_TYPES)
LOCAL_DEVICE_SN = "local"


@dataclass
class UploadResult:
    recording_id: str
    filename: str
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def check_upload(filename: Optional[str], size: int) -> str:
    """
    Validate an upload before reading it.

    Returns:
        Lower-cased extension including the dot

    Raises:
        ValidationError: Missing file or unsupported extension
        PayloadTooLargeError: Larger than MAX_UPLOAD_BYTES
    """
    if not filename:
        raise ValidationError("No file provided")
    if size > MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError("File exceeds the 500 MB size limit")
    ext = PurePosixPath(filename).suffix.lower()
    if ext not in ACCEPTED_EXTENSIONS:
        raise ValidationError(f"Unsupported format. Accepted: {', '.join(ACCEPTED_EXTENSIONS)}")
    return ext


class RecordingUploader:
    """Stores user-supplied audio files as recordings."""

    def __init__(self, recordings, storage: StorageProvider, audio_engine: AudioEngine):
        self.recordings = recordings
        self.storage = storage
        self.audio_engine = audio_engine

    async def _duration_ms(self, data: bytes, ext: str) -> int:
        with tempfile.TemporaryDirectory(prefix="plaud-upload-") as tmp:
            input_path = Path(tmp) / f"input{ext}"
            await asyncio.to_thread(input_path.write_bytes, data)
            return await self.audio_engine.probe_duration_ms(input_path)

    async def upload(
        self,
        user_id: str,
        filename: Optional[str],
        data: bytes,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        """
        Store an uploaded audio file and register it as a recording.

        A duration ffprobe cannot determine is stored as 0.

        Raises:
            ValidationError: Empty file or unsupported extension
            PayloadTooLargeError: Larger than MAX_UPLOAD_BYTES
        """
        ext = check_upload(filename, len(data))
        if not data:
            raise ValidationError("No file provided")

        duration_ms = await self._duration_ms(data, ext)
        file_id = f"{UPLOADED_PREFIX}{uuid.uuid4().hex}"
        key = f"{user_id}/{file_id}{ext}"

        await self.storage.upload_file(key, data, content_type or AUDIO_MIME_TYPES.get(ext, DEFAULT_MIME_TYPE))

        now = datetime.now(timezone.utc)
        title = PurePosixPath(filename).stem
        row = {
            "user_id": user_id,
            "device_sn": LOCAL_DEVICE_SN,
            "plaud_file_id": file_id,
            "filename": title,
            "duration": duration_ms,
            "start_time": now,
            "end_time": now + timedelta(milliseconds=duration_ms),
            "filesize": len(data),
            "file_md5": hashlib.md5(data).hexdigest(),
            "storage_type": self.storage.storage_type,
            "storage_path": key,
            "downloaded_at": now,
            "plaud_version": "1",
            "is_trash": False,
        }
        try:
            recording_id = await self.recordings.insert_recording(row)
        except Exception:
            try:
                await self.storage.delete_file(key)
            except StorageError as exc:
                logger.error("Failed to delete orphaned upload %s: %s", key, exc, exc_info=True)
            raise

        logger.info("Uploaded %s as recording %s (%d bytes, %d ms)", filename, recording_id, len(data), duration_ms)
        return UploadResult(recording_id=recording_id, filename=title)
