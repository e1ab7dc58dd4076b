"""
HTTP API Tests.

Routes run with FastAPI's TestClient against a ServiceContainer built from
the in-memory fakes. The lifespan is not entered, so no database or worker
is started.
"""

import pytest
from fastapi.testclient import TestClient

from api.dependencies import ServiceContainer
from main import app
from recording.transforms import RecordingTransformer
from recording.upload import RecordingUploader
from sync.engine import SyncEngine
from tests.conftest import FakeAudioEngine, FakePlaudClient, FakeQueue, make_plaud_recording, make_recording_row
from transcription.pipeline import TranscriptionPipeline

HEADERS = {"X-User-Id": "user-1"}


@pytest.fixture
def plaud_client():
    return FakePlaudClient([make_plaud_recording("remote-1", version_ms=5)])


@pytest.fixture
def services(recordings, transcriptions, credentials, settings, connections, blob_storage, audio_engine, plaud_client):
    pipeline = TranscriptionPipeline(recordings, transcriptions, credentials, settings, blob_storage, audio_engine)
    container = ServiceContainer(
        recordings=recordings,
        transcriptions=transcriptions,
        connections=connections,
        settings=settings,
        credentials=credentials,
        storage=blob_storage,
        audio_engine=audio_engine,
        pipeline=pipeline,
        transcription_queue=FakeQueue(),
        sync_engine=SyncEngine(
            connections, recordings, settings, blob_storage,
            client_factory=lambda token, api_base: plaud_client,
        ),
        transformer=RecordingTransformer(recordings, settings, blob_storage, audio_engine),
        uploader=RecordingUploader(recordings, blob_storage, audio_engine),
        plaud_client_factory=lambda token, api_base: plaud_client,
        connect_client_factory=lambda token, api_base: plaud_client,
    )
    row = recordings.add(make_recording_row("r1", user_id="user-1", plaud_file_id="abc"))
    blob_storage.blobs[row["storage_path"]] = b"s" * 2048
    return container


@pytest.fixture
def client(services):
    app.state.services = services
    try:
        yield TestClient(app)
    finally:
        app.state.services = None


class TestHealth:

    def test_healthz(self, client):
        assert client.get("/healthz").json() == {"status": "healthy"}

    def test_readyz_waits_for_worker(self, client, services):
        assert client.get("/readyz").status_code == 503

        services.transcription_queue.running = True
        body = client.get("/readyz").json()

        assert body["status"] == "ready"
        assert "pooling_enabled" in body["db_pool"]


class TestSyncRoute:

    def test_requires_user_header(self, client):
        assert client.post("/sync").status_code == 401

    def test_sync_without_connection(self, client):
        response = client.post("/sync", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["errors"] == ["No Plaud connection found"]

    def test_sync_reports_counts(self, client, connections):
        connections.connections["user-1"] = {
            "id": "c1", "bearer_token": "enc-v1-x", "api_base": "https://api.plaud.ai",
        }

        body = client.post("/sync", headers=HEADERS).json()

        assert body["success"] is True
        assert body["new_recordings"] == 1
        assert body["pending_transcription"] == []


class TestTransformRoutes:

    def test_remove_silence(self, client):
        response = client.post("/recordings/r1/remove-silence", headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["reduction_percent"] == 75
        assert set(body) == {"success", "recording_id", "original_size_mb", "new_size_mb", "reduction_percent"}

    def test_unknown_recording_is_404(self, client):
        response = client.post("/recordings/missing/remove-silence", headers=HEADERS)

        assert response.status_code == 404
        assert response.json()["detail"] == "Recording not found"

    def test_other_users_recording_is_404(self, client):
        response = client.post("/recordings/r1/split", headers={"X-User-Id": "user-2"})

        assert response.status_code == 404

    def test_conflict_is_409(self, client, recordings):
        recordings.add(make_recording_row("foreign", user_id="user-2", plaud_file_id="silence-removed-abc"))

        response = client.post("/recordings/r1/remove-silence", headers=HEADERS)

        assert response.status_code == 409

    def test_split(self, client, recordings):
        recordings.rows["r1"]["duration"] = 125 * 60_000

        body = client.post("/recordings/r1/split", headers=HEADERS).json()

        assert body["success"] is True
        assert body["segment_count"] == 3
        assert len(body["recording_ids"]) == 3

    def test_split_too_short_is_400(self, client, services):
        services.transformer.audio_engine = FakeAudioEngine(part_count=1)

        response = client.post("/recordings/r1/split", headers=HEADERS)

        assert response.status_code == 400
        assert "too short" in response.json()["detail"]


class TestRecordingRoutes:

    def test_transcribe_without_credentials(self, client):
        response = client.post("/recordings/r1/transcribe", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "No transcription API configured"}

    def test_transcribe_unknown_recording(self, client):
        assert client.post("/recordings/nope/transcribe", headers=HEADERS).status_code == 404

    def test_signed_url(self, client):
        body = client.get("/recordings/r1/signed-url", headers=HEADERS).json()

        assert body == {"signed_url": "https://blobs.test/user-1/pf-r1.mp3?expires=3600", "expires_in": 3600}

    def test_sync_title_uses_body_title(self, client, connections, plaud_client, recordings):
        connections.connections["user-1"] = {
            "id": "c1", "bearer_token": "enc-v1-x", "api_base": "https://api.plaud.ai",
        }
        recordings.rows["r1"]["filename_modified"] = True

        response = client.post("/recordings/r1/sync-title", headers=HEADERS, json={"title": "Quarterly review"})

        assert response.status_code == 200
        assert response.json() == {"status": "synced"}
        assert plaud_client.renamed == [("abc", "Quarterly review")]
        assert recordings.rows["r1"]["filename_modified"] is False

    def test_sync_title_defaults_to_filename(self, client, connections, plaud_client):
        connections.connections["user-1"] = {
            "id": "c1", "bearer_token": "enc-v1-x", "api_base": "https://api.plaud.ai",
        }

        response = client.post("/recordings/r1/sync-title", headers=HEADERS)

        assert response.json() == {"status": "synced"}
        assert plaud_client.renamed == [("abc", "Team Meeting")]

    def test_sync_title_without_connection(self, client):
        response = client.post("/recordings/r1/sync-title", headers=HEADERS)

        assert response.json() == {"status": "no_connection"}

    def test_sync_title_for_local_recording(self, client, recordings):
        recordings.add(make_recording_row("part", user_id="user-1", plaud_file_id="split-abc-part001"))

        response = client.post("/recordings/part/sync-title", headers=HEADERS)

        assert response.json() == {"status": "locally_created"}

    def test_local_audio_is_owner_scoped(self, client):
        ok = client.get("/recordings/audio/user-1/pf-r1.mp3", headers=HEADERS)
        forbidden = client.get("/recordings/audio/user-1/pf-r1.mp3", headers={"X-User-Id": "user-2"})

        assert ok.status_code == 200
        assert ok.content == b"s" * 2048
        assert ok.headers["content-type"] == "audio/mpeg"
        assert forbidden.status_code == 403


class TestUploadRoute:

    def test_upload_creates_recording(self, client, recordings, blob_storage):
        response = client.post(
            "/recordings/upload",
            headers=HEADERS,
            files={"file": ("Standup.mp3", b"a" * 1024, "audio/mpeg")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["filename"] == "Standup"
        row = recordings.rows[body["recording_id"]]
        assert row["plaud_file_id"].startswith("uploaded-")
        assert blob_storage.blobs[row["storage_path"]] == b"a" * 1024

    def test_unsupported_format_is_400(self, client, blob_storage):
        response = client.post(
            "/recordings/upload",
            headers=HEADERS,
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Unsupported format")
        assert blob_storage.uploads == []

    def test_requires_user_header(self, client):
        response = client.post("/recordings/upload", files={"file": ("a.mp3", b"a", "audio/mpeg")})

        assert response.status_code == 401


class TestPlaudConnectRoute:

    def test_connect_saves_connection(self, client, connections):
        response = client.post("/plaud/connect", headers=HEADERS, json={"bearer_token": "tok-123"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["devices"] == [{"sn": "SN-001", "name": "Plaud Note", "model": "note", "version_number": 131}]
        assert connections.connections["user-1"]["bearer_token"].startswith("enc-v1-")

    def test_invalid_token_is_400(self, client, connections, plaud_client):
        plaud_client.token_valid = False

        response = client.post("/plaud/connect", headers=HEADERS, json={"bearer_token": "bad"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid bearer token"
        assert connections.connections == {}

    def test_missing_token_is_400(self, client):
        response = client.post("/plaud/connect", headers=HEADERS, json={})

        assert response.status_code == 400

    def test_connected_account_can_sync(self, client, connections):
        client.post("/plaud/connect", headers=HEADERS, json={"bearer_token": "tok-123"})

        body = client.post("/sync", headers=HEADERS).json()

        assert body["success"] is True
        assert body["new_recordings"] == 1
