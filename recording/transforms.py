"""
Audio transform operations on stored recordings.

Both operations share one shape:
    read recording -> ffmpeg -> validate output -> upload -> register rows

Each run uploads under fresh keys and registers derived rows with an
owner-scoped upsert. If registration fails, or the synthetic plaud_file_id
already belongs to another user, only the blobs uploaded by that run are
deleted before the error propagates. Once a re-run replaces an existing
derived row, the blob the old row pointed at is deleted.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import tempfile
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from db.schema_constants import SILENCE_REMOVED_PREFIX, SPLIT_PREFIX
from recording.audio_engine import AudioEngine
from storage.base import StorageError, StorageProvider
from utils.audio_formats import get_audio_extension, strip_extension
from utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

OUTPUT_CONTENT_TYPE = "audio/ogg"
CONFLICT_MESSAGE = "Recording was modified concurrently, try again"


@dataclass
class SilenceRemovalResult:
    recording_id: str
    original_size_mb: float
    new_size_mb: float
    reduction_percent: int
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SplitResult:
    segment_count: int
    recording_ids: list[str] = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _size_mb(size_bytes: int) -> float:
    return round(size_bytes / 1024 / 1024, 1)


def _attempt_id() -> str:
    """Suffix that keeps each run's blobs apart from rows already registered."""
    return uuid.uuid4().hex[:12]


def _derived_row(source: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Row for a derived recording, inheriting device metadata from the source."""
    row = {
        "user_id": source["user_id"],
        "device_sn": source["device_sn"],
        "storage_type": source["storage_type"],
        "downloaded_at": datetime.now(timezone.utc),
        "plaud_version": source["plaud_version"],
        "timezone": source.get("timezone"),
        "zonemins": source.get("zonemins"),
        "scene": source.get("scene"),
        "is_trash": False,
    }
    row.update(overrides)
    return row


class RecordingTransformer:
    """Silence removal and splitting for a user's stored recordings."""

    def __init__(
        self,
        recordings,
        settings,
        storage: StorageProvider,
        audio_engine: AudioEngine,
    ):
        self.recordings = recordings
        self.settings = settings
        self.storage = storage
        self.audio_engine = audio_engine

    async def _load_source(self, user_id: str, recording_id: str) -> tuple[dict[str, Any], bytes]:
        recording = await self.recordings.get_recording(user_id, recording_id)
        if not recording:
            raise NotFoundError("Recording not found")
        audio = await self.storage.download_file(recording["storage_path"])
        return recording, audio

    async def _discard(self, keys: list[str]) -> None:
        for key in keys:
            try:
                await self.storage.delete_file(key)
            except StorageError as exc:
                logger.error("Failed to delete orphaned blob %s: %s", key, exc, exc_info=True)

    async def _register(self, rows: list[dict[str, Any]], uploaded: list[str]) -> list[str]:
        """
        Upsert derived rows for blobs uploaded under this attempt's keys.

        On failure only this attempt's blobs are deleted. On success the blobs
        of rows that were replaced are deleted, since nothing points at them.
        """
        try:
            registered = await self.recordings.upsert_derived_recordings(rows)
        except Exception:
            await self._discard(uploaded)
            raise
        if registered is None:
            await self._discard(uploaded)
            raise ConflictError(CONFLICT_MESSAGE)

        replaced = [path for _, path in registered if path and path not in uploaded]
        if replaced:
            logger.info("Deleting %d superseded derived blob(s)", len(replaced))
            await self._discard(replaced)
        return [recording_id for recording_id, _ in registered]

    # =========================================================================
    # Silence removal
    # =========================================================================

    async def remove_silence(self, user_id: str, recording_id: str) -> SilenceRemovalResult:
        """
        Remove silence from a recording into a new derived recording.

        Raises:
            NotFoundError: Recording does not exist for this user
            ValidationError: Output duration could not be determined (nothing uploaded)
            ConflictError: Derived id owned by another user (upload rolled back)
        """
        source, audio = await self._load_source(user_id, recording_id)
        prefs = await self.settings.get_settings(user_id)

        with tempfile.TemporaryDirectory(prefix="plaud-silence-") as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input{get_audio_extension(source['storage_path'], '.ogg')}"
            output_path = tmp_dir / "output.ogg"
            await asyncio.to_thread(input_path.write_bytes, audio)

            await self.audio_engine.remove_silence(
                input_path,
                output_path,
                threshold_db=prefs.silence_threshold_db,
                min_silence_seconds=prefs.silence_duration_seconds,
            )
            output = await asyncio.to_thread(output_path.read_bytes)
            duration_ms = await self.audio_engine.probe_duration_ms(output_path)

        if duration_ms <= 0 or not output:
            raise ValidationError("Could not determine the duration of the processed audio")

        key = f"{strip_extension(source['storage_path'])}_silence-removed-{_attempt_id()}.ogg"
        await self.storage.upload_file(key, output, OUTPUT_CONTENT_TYPE)

        start_time = source["start_time"]
        row = _derived_row(
            source,
            plaud_file_id=f"{SILENCE_REMOVED_PREFIX}{source['plaud_file_id']}",
            filename=f"{strip_extension(source['filename'])} (Silence Removed)",
            duration=duration_ms,
            start_time=start_time,
            end_time=start_time + timedelta(milliseconds=duration_ms),
            filesize=len(output),
            file_md5=hashlib.md5(output).hexdigest(),
            storage_path=key,
        )
        [new_id] = await self._register([row], [key])

        reduction = round((1 - len(output) / len(audio)) * 100) if audio else 0
        logger.info(
            "Removed silence from %s -> %s (%d -> %d bytes, %d%%)",
            recording_id, new_id, len(audio), len(output), reduction,
        )
        return SilenceRemovalResult(
            recording_id=new_id,
            original_size_mb=_size_mb(len(audio)),
            new_size_mb=_size_mb(len(output)),
            reduction_percent=reduction,
        )

    # =========================================================================
    # Split
    # =========================================================================

    async def split(self, user_id: str, recording_id: str) -> SplitResult:
        """
        Split a recording into split_segment_minutes-long parts.

        Raises:
            NotFoundError: Recording does not exist for this user
            ValidationError: Recording yields a single segment (nothing written)
            ConflictError: A part id is owned by another user (uploads rolled back)
        """
        source, audio = await self._load_source(user_id, recording_id)
        prefs = await self.settings.get_settings(user_id)
        segment_seconds = int(prefs.split_segment_minutes) * 60
        segment_ms = segment_seconds * 1000

        with tempfile.TemporaryDirectory(prefix="plaud-split-") as tmp:
            tmp_dir = Path(tmp)
            input_path = tmp_dir / f"input{get_audio_extension(source['storage_path'], '.ogg')}"
            await asyncio.to_thread(input_path.write_bytes, audio)

            parts = await self.audio_engine.split_segments(input_path, tmp_dir, segment_seconds)
            if len(parts) <= 1:
                raise ValidationError("Recording is too short to split into multiple segments")
            segments = [await asyncio.to_thread(part.read_bytes) for part in parts]

        key_base = strip_extension(source["storage_path"])
        attempt = _attempt_id()
        base_filename = strip_extension(source["filename"])
        start_time = source["start_time"]
        last = len(segments) - 1

        uploaded: list[str] = []
        rows: list[dict[str, Any]] = []
        try:
            for index, data in enumerate(segments):
                part = f"{index + 1:03d}"
                key = f"{key_base}_part{part}-{attempt}.ogg"
                await self.storage.upload_file(key, data, OUTPUT_CONTENT_TYPE)
                uploaded.append(key)

                offset_ms = index * segment_ms
                if index == last:
                    duration_ms = source["duration"] - offset_ms
                    end_time = source["end_time"]
                else:
                    duration_ms = segment_ms
                    end_time = start_time + timedelta(milliseconds=offset_ms + segment_ms)

                rows.append(_derived_row(
                    source,
                    plaud_file_id=f"{SPLIT_PREFIX}{source['plaud_file_id']}-part{part}",
                    filename=f"{base_filename} (Part {index + 1})",
                    duration=duration_ms,
                    start_time=start_time + timedelta(milliseconds=offset_ms),
                    end_time=end_time,
                    filesize=len(data),
                    file_md5=hashlib.md5(data).hexdigest(),
                    storage_path=key,
                ))
        except Exception:
            await self._discard(uploaded)
            raise

        ids = await self._register(rows, uploaded)
        logger.info("Split %s into %d parts", recording_id, len(ids))
        return SplitResult(segment_count=len(ids), recording_ids=ids)
