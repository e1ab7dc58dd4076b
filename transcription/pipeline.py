"""
Transcription pipeline for stored recordings.

trim trailing silence -> speech engine -> hallucination cleanup -> persist

transcribe() never raises: every failure is logged and reported in the
returned TranscriptionOutcome so the background queue and the API can treat
it uniformly.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from recording.audio_engine import AudioEngine
from storage.base import StorageProvider
from transcription.post_process import post_process_transcription
from transcription.speech_engine import SpeechEngine
from transcription.transcription_config import DEFAULT_PROVIDER, DEFAULT_TRANSCRIPTION_MODEL, TRANSCRIPTION_TYPE
from utils.encryption import decrypt_secret

logger = logging.getLogger(__name__)


@dataclass
class TranscriptionOutcome:
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TranscriptionPipeline:

    def __init__(
        self,
        recordings,
        transcriptions,
        credentials,
        settings,
        storage: StorageProvider,
        audio_engine: AudioEngine,
        speech_engine_factory: Callable[..., SpeechEngine] = SpeechEngine,
    ):
        self.recordings = recordings
        self.transcriptions = transcriptions
        self.credentials = credentials
        self.settings = settings
        self.storage = storage
        self.audio_engine = audio_engine
        self.speech_engine_factory = speech_engine_factory

    async def transcribe(self, user_id: str, recording_id: str) -> TranscriptionOutcome:
        """
        Transcribe a recording, once.

        A recording that already has a non-empty transcription succeeds
        without calling the speech engine.
        """
        try:
            return await self._transcribe(user_id, recording_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error transcribing recording %s: %s", recording_id, exc, exc_info=True)
            return TranscriptionOutcome(success=False, error=str(exc) or "Transcription failed")

    async def _transcribe(self, user_id: str, recording_id: str) -> TranscriptionOutcome:
        recording = await self.recordings.get_recording(user_id, recording_id)
        if not recording:
            return TranscriptionOutcome(success=False, error="Recording not found")

        existing = await self.transcriptions.get_by_recording(recording_id)
        if existing and existing.get("text"):
            logger.debug("Recording %s already transcribed", recording_id)
            return TranscriptionOutcome(success=True)

        credentials = await self.credentials.get_transcription_credentials(user_id)
        if not credentials:
            return TranscriptionOutcome(success=False, error="No transcription API configured")

        prefs = await self.settings.get_settings(user_id)
        model = credentials.get("default_model") or DEFAULT_TRANSCRIPTION_MODEL
        provider = credentials.get("provider") or DEFAULT_PROVIDER
        engine = self.speech_engine_factory(
            decrypt_secret(credentials["api_key"]),
            base_url=credentials.get("base_url"),
        )

        storage_path = recording["storage_path"]
        audio = await self.storage.download_file(storage_path)
        audio = await self.audio_engine.trim_trailing_silence(audio, storage_path)

        result = await engine.transcribe(
            audio,
            storage_path,
            model=model,
            language=prefs.default_transcription_language,
        )
        text = post_process_transcription(result.text, result.segments)
        if text != result.text:
            logger.info(
                "Post-processing trimmed transcription of %s from %d to %d chars",
                recording_id, len(result.text), len(text),
            )

        if existing:
            await self.transcriptions.update_transcription(
                existing["id"],
                text=text,
                detected_language=result.language,
                provider=provider,
                model=model,
            )
        else:
            await self.transcriptions.insert_transcription(
                recording_id=recording_id,
                user_id=user_id,
                text=text,
                detected_language=result.language,
                provider=provider,
                model=model,
                transcription_type=TRANSCRIPTION_TYPE,
            )
        return TranscriptionOutcome(success=True)
