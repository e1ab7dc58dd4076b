"""
Transcription module.

Contains:
- speech_engine: OpenAI-compatible speech-to-text adapter
- post_process: Hallucination cleanup heuristics
- pipeline: TranscriptionPipeline (trim -> transcribe -> clean -> persist)
- background: TranscriptionQueue worker
"""

from transcription.post_process import (
    TranscriptionSegment,
    post_process_transcription,
    remove_repetitions,
    filter_segments_by_quality,
)
from transcription.speech_engine import (
    ResponseShape,
    SpeechEngine,
    SpeechResult,
    response_shape_for_model,
)
from transcription.pipeline import TranscriptionOutcome, TranscriptionPipeline
from transcription.background import TranscriptionQueue

__all__ = [
    # Post-processing
    "TranscriptionSegment",
    "post_process_transcription",
    "remove_repetitions",
    "filter_segments_by_quality",
    # Speech engine
    "ResponseShape",
    "SpeechEngine",
    "SpeechResult",
    "response_shape_for_model",
    # Pipeline
    "TranscriptionOutcome",
    "TranscriptionPipeline",
    "TranscriptionQueue",
]
