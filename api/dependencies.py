"""
Service wiring for the API.

ServiceContainer holds every collaborator the routes need. main.py builds one
in its lifespan and stores it on app.state; routes receive it through the
get_services dependency instead of module-level singletons.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Header, HTTPException, Request, status

from db.storage import (
    ApiCredentialStorage,
    RecordingStorage,
    SyncConnectionStorage,
    TranscriptionStorage,
    UserSettingsStorage,
)
from plaud.client import PlaudClient, create_plaud_client
from plaud.connect import plain_token_client
from recording.audio_engine import AudioEngine
from recording.transforms import RecordingTransformer
from recording.upload import RecordingUploader
from storage import StorageProvider, create_storage_provider
from sync.engine import SyncEngine
from sync.notifications import BarkNotifier, EmailNotifier
from transcription.background import TranscriptionQueue
from transcription.pipeline import TranscriptionPipeline

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    recordings: RecordingStorage
    transcriptions: TranscriptionStorage
    connections: SyncConnectionStorage
    settings: UserSettingsStorage
    credentials: ApiCredentialStorage
    storage: StorageProvider
    audio_engine: AudioEngine
    pipeline: TranscriptionPipeline
    transcription_queue: TranscriptionQueue
    sync_engine: SyncEngine
    transformer: RecordingTransformer
    uploader: RecordingUploader
    plaud_client_factory: Callable[..., PlaudClient] = create_plaud_client
    # Builds a client from a plain (not yet stored) token
    connect_client_factory: Callable[..., PlaudClient] = plain_token_client


def build_services(storage: Optional[StorageProvider] = None) -> ServiceContainer:
    """Construct the production service graph from environment configuration."""
    recordings = RecordingStorage()
    transcriptions = TranscriptionStorage()
    connections = SyncConnectionStorage()
    settings = UserSettingsStorage()
    credentials = ApiCredentialStorage()
    storage = storage or create_storage_provider()
    audio_engine = AudioEngine()

    pipeline = TranscriptionPipeline(
        recordings,
        transcriptions,
        credentials,
        settings,
        storage,
        audio_engine,
    )
    queue = TranscriptionQueue(pipeline.transcribe)
    sync_engine = SyncEngine(
        connections,
        recordings,
        settings,
        storage,
        client_factory=create_plaud_client,
        transcription_queue=queue,
        email_notifier=EmailNotifier(),
        bark_notifier=BarkNotifier(),
    )
    transformer = RecordingTransformer(recordings, settings, storage, audio_engine)
    uploader = RecordingUploader(recordings, storage, audio_engine)

    logger.info("Services initialized (storage=%s)", storage.storage_type)
    return ServiceContainer(
        recordings=recordings,
        transcriptions=transcriptions,
        connections=connections,
        settings=settings,
        credentials=credentials,
        storage=storage,
        audio_engine=audio_engine,
        pipeline=pipeline,
        transcription_queue=queue,
        sync_engine=sync_engine,
        transformer=transformer,
        uploader=uploader,
    )


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")
    return services


def current_user(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    """Caller identity, set by the upstream auth proxy."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id.strip()
