"""
Speech-to-text adapter for OpenAI-compatible transcription APIs.

The response shape depends on what the model supports:
- DIARIZED: speaker-labelled segments (models named *diarize*)
- PLAIN_TEXT: text only (gpt-4o* transcription models)
- VERBOSE_WITH_SEGMENTS: text, language and per-segment quality metrics
  (whisper-1, faster-whisper, Groq, Speaches...)
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from openai import AsyncOpenAI

from transcription.post_process import TranscriptionSegment
from transcription.transcription_config import (
    DEFAULT_TRANSCRIPTION_MODEL,
    SPEECH_MAX_RETRIES,
    SPEECH_REQUEST_TIMEOUT,
)
from utils.audio_formats import audio_filename_with_ext, get_audio_mime_type

logger = logging.getLogger(__name__)


class ResponseShape(enum.Enum):
    DIARIZED = "diarized_json"
    PLAIN_TEXT = "json"
    VERBOSE_WITH_SEGMENTS = "verbose_json"

    @property
    def response_format(self) -> str:
        return self.value


def response_shape_for_model(model: str) -> ResponseShape:
    name = model.lower()
    if "diarize" in name:
        return ResponseShape.DIARIZED
    if name.startswith("gpt-4o"):
        return ResponseShape.PLAIN_TEXT
    return ResponseShape.VERBOSE_WITH_SEGMENTS


@dataclass
class SpeechResult:
    text: str
    shape: ResponseShape
    language: Optional[str] = None
    # Only populated for VERBOSE_WITH_SEGMENTS
    segments: list[TranscriptionSegment] = field(default_factory=list)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def parse_speech_response(response: Any, shape: ResponseShape) -> SpeechResult:
    """Normalize an SDK response (object, dict or bare string) into a SpeechResult."""
    if isinstance(response, str):
        return SpeechResult(text=response, shape=shape)

    if shape is ResponseShape.DIARIZED:
        lines = [
            f"{_field(seg, 'speaker')}: {(_field(seg, 'text') or '').strip()}"
            for seg in _field(response, "segments") or []
        ]
        return SpeechResult(text="\n".join(lines), shape=shape)

    if shape is ResponseShape.VERBOSE_WITH_SEGMENTS:
        return SpeechResult(
            text=_field(response, "text") or "",
            shape=shape,
            language=_field(response, "language"),
            segments=[TranscriptionSegment.from_obj(seg) for seg in _field(response, "segments") or []],
        )

    return SpeechResult(text=_field(response, "text") or "", shape=shape)


class SpeechEngine:
    """Transcribes audio bytes with one user's credentials."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=SPEECH_REQUEST_TIMEOUT,
            max_retries=SPEECH_MAX_RETRIES,
        )

    async def transcribe(
        self,
        audio: bytes,
        storage_path: str,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
        language: Optional[str] = None,
    ) -> SpeechResult:
        shape = response_shape_for_model(model)
        # Some servers sniff the format from the filename extension
        upload = (audio_filename_with_ext(storage_path), audio, get_audio_mime_type(storage_path))

        kwargs: dict[str, Any] = {
            "file": upload,
            "model": model,
            "response_format": shape.response_format,
        }
        if language:
            kwargs["language"] = language

        logger.info("Transcribing %s with %s (%s)", storage_path, model, shape.name)
        response = await self.client.audio.transcriptions.create(**kwargs)
        return parse_speech_response(response, shape)
