"""
Recording audio module.

Contains:
- audio_engine: ffmpeg/ffprobe adapter (silence removal, split, trim, probe)
- transforms: RecordingTransformer for derived recordings
- upload: RecordingUploader for manual audio uploads
"""

from recording.audio_engine import (
    AudioEngine,
    AudioEngineError,
    AudioEngineTimeout,
    compute_timeout,
    clamp_silence_params,
)
from recording.transforms import (
    RecordingTransformer,
    SilenceRemovalResult,
    SplitResult,
)
from recording.upload import (
    RecordingUploader,
    UploadResult,
)

__all__ = [
    # Audio engine
    "AudioEngine",
    "AudioEngineError",
    "AudioEngineTimeout",
    "compute_timeout",
    "clamp_silence_params",
    # Transforms
    "RecordingTransformer",
    "SilenceRemovalResult",
    "SplitResult",
    # Upload
    "RecordingUploader",
    "UploadResult",
]
