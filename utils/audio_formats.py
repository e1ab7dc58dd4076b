"""Audio file extension helpers for storage keys and speech uploads."""

from pathlib import PurePosixPath

AUDIO_MIME_TYPES = {
    ".mp3": "audio/mpeg",
    ".mp4": "audio/mp4",
    ".m4a": "audio/mp4",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg",  # Opus is stored in an Ogg container
    ".webm": "audio/webm",
    ".aac": "audio/aac",
    ".flac": "audio/flac",
}

DEFAULT_MIME_TYPE = "audio/mpeg"


def get_audio_extension(path: str, default: str = ".mp3") -> str:
    suffix = PurePosixPath(path).suffix.lower()
    return suffix if suffix in AUDIO_MIME_TYPES else default


def get_audio_mime_type(path: str) -> str:
    """Return the MIME type for an audio path, audio/mpeg when unknown."""
    return AUDIO_MIME_TYPES.get(PurePosixPath(path).suffix.lower(), DEFAULT_MIME_TYPE)


def audio_filename_with_ext(path: str) -> str:
    """
    Filename sent to the speech engine.

    Some OpenAI-compatible servers (faster-whisper, Speaches) detect the
    audio format from the filename extension rather than the MIME type.
    """
    return f"audio{get_audio_extension(path)}"


def strip_extension(name: str) -> str:
    """Drop the final extension: "user/abc.mp3" -> "user/abc"."""
    path = PurePosixPath(name)
    if not path.suffix:
        return name
    return name[: -len(path.suffix)]
