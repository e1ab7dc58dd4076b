"""
Recording Routes Module.

Handles per-recording operations for the calling user:
- POST /recordings/upload: Store a user-supplied audio file
- POST /recordings/{id}/remove-silence: Derive a silence-removed copy
- POST /recordings/{id}/split: Split into fixed-length parts
- POST /recordings/{id}/transcribe: Transcribe now (idempotent)
- GET  /recordings/{id}/signed-url: Playback URL for the stored audio
- POST /recordings/{id}/sync-title: Push the filename back to Plaud
- GET  /recordings/audio/{key}: Serve locally stored audio
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import Response

from api.dependencies import ServiceContainer, current_user, get_services
from api.models import (
    SignedUrlResponse,
    SilenceRemovalResponse,
    SplitResponse,
    SyncTitleRequest,
    SyncTitleResponse,
    TranscribeResponse,
    UploadResponse,
)
from plaud.title_sync import LOCALLY_CREATED, NO_CONNECTION, sync_title_to_plaud
from recording.upload import check_upload
from storage.base import StorageError
from storage.storage_config import SIGNED_URL_EXPIRES_IN
from utils.audio_formats import get_audio_mime_type
from utils.errors import PipelineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recordings", tags=["recordings"])


def _http_error(exc: PipelineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


async def _get_owned_recording(services: ServiceContainer, user_id: str, recording_id: str) -> dict[str, Any]:
    recording = await services.recordings.get_recording(user_id, recording_id)
    if not recording:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recording not found")
    return recording


# =============================================================================
# Upload
# =============================================================================

@router.post("/upload", response_model=UploadResponse)
async def upload_recording(
    file: UploadFile = File(...),
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> UploadResponse:
    try:
        # Reject by declared size and extension before reading the body
        check_upload(file.filename, file.size or 0)
        data = await file.read()
        result = await services.uploader.upload(user_id, file.filename, data, file.content_type)
    except PipelineError as exc:
        raise _http_error(exc)
    except Exception as exc:
        logger.error("Error uploading recording %s: %s", file.filename, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to upload recording")
    finally:
        await file.close()
    return UploadResponse(**result.to_dict())


# =============================================================================
# Audio transforms
# =============================================================================

@router.post("/{recording_id}/remove-silence", response_model=SilenceRemovalResponse)
async def remove_silence(
    recording_id: str,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> SilenceRemovalResponse:
    try:
        result = await services.transformer.remove_silence(user_id, recording_id)
    except PipelineError as exc:
        raise _http_error(exc)
    except Exception as exc:
        logger.error("Error removing silence from %s: %s", recording_id, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to remove silence")
    return SilenceRemovalResponse(**result.to_dict())


@router.post("/{recording_id}/split", response_model=SplitResponse)
async def split_recording(
    recording_id: str,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> SplitResponse:
    try:
        result = await services.transformer.split(user_id, recording_id)
    except PipelineError as exc:
        raise _http_error(exc)
    except Exception as exc:
        logger.error("Error splitting recording %s: %s", recording_id, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to split recording")
    return SplitResponse(**result.to_dict())


# =============================================================================
# Transcription
# =============================================================================

@router.post("/{recording_id}/transcribe", response_model=TranscribeResponse)
async def transcribe_recording(
    recording_id: str,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> TranscribeResponse:
    await _get_owned_recording(services, user_id, recording_id)
    outcome = await services.pipeline.transcribe(user_id, recording_id)
    if not outcome.success:
        logger.warning("Transcription of %s failed: %s", recording_id, outcome.error)
    return TranscribeResponse(**outcome.to_dict())


# =============================================================================
# Playback
# =============================================================================

@router.get("/{recording_id}/signed-url", response_model=SignedUrlResponse)
async def get_signed_url(
    recording_id: str,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> SignedUrlResponse:
    recording = await _get_owned_recording(services, user_id, recording_id)
    try:
        url = await services.storage.get_signed_url(recording["storage_path"], SIGNED_URL_EXPIRES_IN)
    except StorageError as exc:
        logger.error("Failed to sign %s: %s", recording["storage_path"], exc, exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to generate signed URL")
    return SignedUrlResponse(signed_url=url, expires_in=SIGNED_URL_EXPIRES_IN)


@router.get("/audio/{key:path}")
async def get_local_audio(
    key: str,
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    """Stream a blob from local storage. Keys are namespaced by owner."""
    if services.storage.storage_type != "local":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    if not key.startswith(f"{user_id}/"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    try:
        data = await services.storage.download_file(key)
    except StorageError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return Response(content=data, media_type=get_audio_mime_type(key))


# =============================================================================
# Remote title sync
# =============================================================================

@router.post("/{recording_id}/sync-title", response_model=SyncTitleResponse)
async def sync_title(
    recording_id: str,
    payload: Optional[SyncTitleRequest] = Body(default=None),
    user_id: str = Depends(current_user),
    services: ServiceContainer = Depends(get_services),
) -> SyncTitleResponse:
    recording = await _get_owned_recording(services, user_id, recording_id)
    title = (payload.title if payload and payload.title else None) or recording["filename"]

    try:
        result = await sync_title_to_plaud(
            user_id,
            recording_id,
            recording["plaud_file_id"],
            title,
            connections=services.connections,
            recordings=services.recordings,
            client_factory=services.plaud_client_factory,
        )
    except PipelineError as exc:
        raise _http_error(exc)
    except Exception as exc:
        logger.error("Error syncing title of %s to Plaud: %s", recording_id, exc, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to sync title to Plaud")

    if result in (LOCALLY_CREATED, NO_CONNECTION):
        logger.info("Title of %s not synced: %s", recording_id, result)
    return SyncTitleResponse(status=result)
