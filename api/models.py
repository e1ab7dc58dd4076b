"""
Pydantic request/response models shared across route modules.
"""

from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# SYNC
# =============================================================================

class SyncResponse(BaseModel):
    success: bool
    new_recordings: int = 0
    updated_recordings: int = 0
    skipped_recordings: int = 0
    errors: list[str] = Field(default_factory=list)
    pending_transcription: list[str] = Field(default_factory=list)


# =============================================================================
# RECORDINGS
# =============================================================================

class SilenceRemovalResponse(BaseModel):
    success: bool = True
    recording_id: str
    original_size_mb: float
    new_size_mb: float
    reduction_percent: int


class SplitResponse(BaseModel):
    success: bool = True
    segment_count: int
    recording_ids: list[str]


class TranscribeResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class SignedUrlResponse(BaseModel):
    signed_url: str
    expires_in: int


class SyncTitleRequest(BaseModel):
    title: Optional[str] = Field(default=None, description="Title to push; defaults to the recording's filename")


class SyncTitleResponse(BaseModel):
    status: str


class UploadResponse(BaseModel):
    success: bool = True
    recording_id: str
    filename: str


# =============================================================================
# PLAUD CONNECTION
# =============================================================================

class PlaudConnectRequest(BaseModel):
    bearer_token: Optional[str] = Field(default=None, description="Token from the Plaud web app")
    api_base: Optional[str] = Field(default=None, description="Plaud server base URL; defaults to the global server")


class PlaudDeviceResponse(BaseModel):
    sn: str
    name: str = ""
    model: str = ""
    version_number: Optional[int] = None


class PlaudConnectResponse(BaseModel):
    success: bool = True
    connection_id: str
    devices: list[PlaudDeviceResponse] = Field(default_factory=list)
