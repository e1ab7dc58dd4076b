"""Sync result value object."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class SyncResult:
    new_recordings: int = 0
    updated_recordings: int = 0
    skipped_recordings: int = 0
    errors: list[str] = field(default_factory=list)
    # Recording ids handed to the background transcription queue
    pending_transcription: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "success": self.success}
