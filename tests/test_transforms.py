"""
Recording Transform Tests.

Silence removal and splitting against the fake audio engine:
- derived row metadata and storage keys
- ownership conflicts roll back uploaded blobs
- re-runs never leave a derived row pointing at a deleted blob
- invalid output never reaches storage
"""

import asyncio
import re
from datetime import timedelta

import pytest

from db.storage.user_settings import UserSettings
from recording.transforms import CONFLICT_MESSAGE, RecordingTransformer
from storage.base import StorageError
from tests.conftest import FakeAudioEngine, make_recording_row
from utils.errors import ConflictError, NotFoundError, ValidationError

USER_ID = "user-1"
SOURCE_AUDIO = b"s" * 2048
SILENCE_KEY = re.compile(r"user-1/pf-r1_silence-removed-[0-9a-f]{12}\.ogg")


@pytest.fixture
def source(recordings, blob_storage):
    row = recordings.add(make_recording_row("r1", user_id=USER_ID))
    blob_storage.blobs[row["storage_path"]] = SOURCE_AUDIO
    return row


@pytest.fixture
def transformer(recordings, settings, blob_storage, audio_engine):
    return RecordingTransformer(recordings, settings, blob_storage, audio_engine)


def derived_rows(recordings, prefix):
    return [row for row in recordings.rows.values() if row["plaud_file_id"].startswith(prefix)]


class TestRemoveSilence:

    async def test_creates_derived_recording(self, transformer, source, recordings, blob_storage, audio_engine):
        result = await transformer.remove_silence(USER_ID, "r1")

        assert result.success
        assert result.reduction_percent == 75
        assert result.original_size_mb == 0.0
        derived = recordings.rows[result.recording_id]
        assert derived["plaud_file_id"] == "silence-removed-pf-r1"
        assert derived["filename"] == "Team Meeting (Silence Removed)"
        assert SILENCE_KEY.fullmatch(derived["storage_path"])
        assert derived["duration"] == audio_engine.probe_ms
        assert derived["end_time"] == source["start_time"] + timedelta(milliseconds=audio_engine.probe_ms)
        assert derived["filesize"] == len(audio_engine.output)
        assert derived["user_id"] == USER_ID
        assert derived["device_sn"] == source["device_sn"]
        assert blob_storage.blobs[derived["storage_path"]] == audio_engine.output

    async def test_uses_user_silence_settings(self, transformer, source, settings, audio_engine):
        settings.settings[USER_ID] = UserSettings(silence_threshold_db=-55.0, silence_duration_seconds=2.5)

        await transformer.remove_silence(USER_ID, "r1")

        assert audio_engine.silence_calls == [{"threshold_db": -55.0, "min_silence_seconds": 2.5}]

    async def test_rerun_replaces_blob_of_existing_row(self, transformer, source, recordings, blob_storage):
        first = await transformer.remove_silence(USER_ID, "r1")
        first_path = recordings.rows[first.recording_id]["storage_path"]

        second = await transformer.remove_silence(USER_ID, "r1")

        assert first.recording_id == second.recording_id
        assert len(recordings.rows) == 2
        current_path = recordings.rows[second.recording_id]["storage_path"]
        assert current_path != first_path
        assert current_path in blob_storage.blobs
        assert first_path not in blob_storage.blobs
        assert source["storage_path"] in blob_storage.blobs

    async def test_failed_rerun_keeps_registered_blob(self, transformer, source, recordings, blob_storage):
        first = await transformer.remove_silence(USER_ID, "r1")
        registered_path = recordings.rows[first.recording_id]["storage_path"]
        recordings.upsert_error = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await transformer.remove_silence(USER_ID, "r1")

        assert recordings.rows[first.recording_id]["storage_path"] == registered_path
        assert registered_path in blob_storage.blobs
        assert blob_storage.deleted == [blob_storage.uploads[1]]

    async def test_concurrent_runs_converge_to_one_row(self, transformer, source, recordings, blob_storage):
        results = await asyncio.gather(
            transformer.remove_silence(USER_ID, "r1"),
            transformer.remove_silence(USER_ID, "r1"),
        )

        assert results[0].recording_id == results[1].recording_id
        [derived] = derived_rows(recordings, "silence-removed-")
        assert derived["storage_path"] in blob_storage.blobs
        # the losing run's blob is the only one left over for deletion
        assert len(blob_storage.uploads) == 2
        assert [key for key in blob_storage.uploads if key in blob_storage.blobs] == [derived["storage_path"]]

    async def test_zero_duration_uploads_nothing(self, recordings, settings, blob_storage, source):
        transformer = RecordingTransformer(recordings, settings, blob_storage, FakeAudioEngine(probe_ms=0))

        with pytest.raises(ValidationError):
            await transformer.remove_silence(USER_ID, "r1")

        assert blob_storage.uploads == []
        assert len(recordings.rows) == 1

    async def test_conflict_deletes_uploaded_blob(self, transformer, source, recordings, blob_storage):
        foreign = recordings.add(make_recording_row("foreign", user_id="user-2", plaud_file_id="silence-removed-pf-r1"))
        blob_storage.blobs[foreign["storage_path"]] = b"theirs"

        with pytest.raises(ConflictError) as exc_info:
            await transformer.remove_silence(USER_ID, "r1")

        assert exc_info.value.message == CONFLICT_MESSAGE
        assert exc_info.value.status_code == 409
        assert blob_storage.deleted == blob_storage.uploads
        assert not any(key in blob_storage.blobs for key in blob_storage.uploads)
        assert recordings.rows["foreign"]["user_id"] == "user-2"
        assert blob_storage.blobs[foreign["storage_path"]] == b"theirs"

    async def test_registration_failure_deletes_uploaded_blob(self, transformer, source, recordings, blob_storage):
        recordings.upsert_error = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await transformer.remove_silence(USER_ID, "r1")

        assert len(blob_storage.deleted) == 1
        assert SILENCE_KEY.fullmatch(blob_storage.deleted[0])

    async def test_unknown_recording(self, transformer, source):
        with pytest.raises(NotFoundError):
            await transformer.remove_silence("user-2", "r1")


class TestSplit:

    @pytest.fixture
    def long_source(self, recordings, blob_storage):
        # 125 minutes
        row = recordings.add(make_recording_row("long", user_id=USER_ID, duration=125 * 60_000))
        blob_storage.blobs[row["storage_path"]] = SOURCE_AUDIO
        return row

    async def test_split_durations_and_boundaries(self, transformer, long_source, recordings, audio_engine):
        result = await transformer.split(USER_ID, "long")

        assert result.segment_count == 3
        assert audio_engine.split_calls == [3600]
        parts = [recordings.rows[recording_id] for recording_id in result.recording_ids]
        assert [p["duration"] for p in parts] == [3_600_000, 3_600_000, 300_000]
        assert [p["plaud_file_id"] for p in parts] == [
            "split-pf-long-part001",
            "split-pf-long-part002",
            "split-pf-long-part003",
        ]
        assert [p["filename"] for p in parts] == [
            "Team Meeting (Part 1)",
            "Team Meeting (Part 2)",
            "Team Meeting (Part 3)",
        ]
        assert parts[0]["start_time"] == long_source["start_time"]
        assert parts[1]["start_time"] == long_source["start_time"] + timedelta(minutes=60)
        assert parts[0]["end_time"] == parts[1]["start_time"]
        assert parts[2]["end_time"] == long_source["end_time"]
        assert re.fullmatch(r"user-1/pf-long_part003-[0-9a-f]{12}\.ogg", parts[2]["storage_path"])

    async def test_segment_length_follows_settings(self, transformer, long_source, settings, audio_engine):
        settings.settings[USER_ID] = UserSettings(split_segment_minutes=30)

        await transformer.split(USER_ID, "long")

        assert audio_engine.split_calls == [1800]

    async def test_resplit_deletes_superseded_parts(self, transformer, long_source, recordings, blob_storage):
        first = await transformer.split(USER_ID, "long")
        old_paths = [recordings.rows[recording_id]["storage_path"] for recording_id in first.recording_ids]

        second = await transformer.split(USER_ID, "long")

        assert second.recording_ids == first.recording_ids
        assert sorted(blob_storage.deleted) == sorted(old_paths)
        for recording_id in second.recording_ids:
            assert recordings.rows[recording_id]["storage_path"] in blob_storage.blobs

    async def test_single_segment_is_rejected(self, recordings, settings, blob_storage, long_source):
        transformer = RecordingTransformer(recordings, settings, blob_storage, FakeAudioEngine(part_count=1))

        with pytest.raises(ValidationError):
            await transformer.split(USER_ID, "long")

        assert blob_storage.uploads == []

    async def test_partial_upload_failure_cleans_up(self, transformer, long_source, recordings, blob_storage):
        blob_storage.fail_upload_on = 1

        with pytest.raises(StorageError):
            await transformer.split(USER_ID, "long")

        assert blob_storage.deleted == blob_storage.uploads
        assert len(blob_storage.deleted) == 1
        assert len(recordings.rows) == 1

    async def test_conflict_on_any_part_rolls_back_all(self, transformer, long_source, recordings, blob_storage):
        recordings.add(make_recording_row("foreign", user_id="user-2", plaud_file_id="split-pf-long-part002"))

        with pytest.raises(ConflictError):
            await transformer.split(USER_ID, "long")

        assert sorted(blob_storage.deleted) == sorted(blob_storage.uploads)
        assert len(blob_storage.deleted) == 3
        assert len(recordings.rows) == 2
