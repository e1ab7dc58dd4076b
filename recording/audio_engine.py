"""
ffmpeg / ffprobe adapter.

All audio work (silence removal, segment splitting, trailing-silence trim,
duration probing) goes through the ffmpeg CLIs. Every invocation carries a
timeout scaled to the input size; on timeout the process is killed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from utils.audio_formats import get_audio_extension

logger = logging.getLogger(__name__)

FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")
FFPROBE_PATH = os.getenv("FFPROBE_PATH", "ffprobe")

# ffmpeg timeout: ~2 s per MB of input, bounded to [30 s, 10 min]
MIN_TIMEOUT_SECONDS = 30.0
MAX_TIMEOUT_SECONDS = 600.0
SECONDS_PER_MB = 2.0

PROBE_TIMEOUT_SECONDS = 30.0

SILENCE_THRESHOLD_RANGE_DB = (-80.0, -10.0)
SILENCE_DURATION_RANGE_S = (0.1, 10.0)

# Double-reverse trim: reverse, remove leading silence, reverse back
TRAILING_TRIM_FILTER = "areverse,silenceremove=start_periods=1:start_duration=0.5:start_threshold=-50dB,areverse"
# Trim output below this size means silenceremove stripped everything
MIN_TRIM_OUTPUT_BYTES = 100

OPUS_BITRATE = "32k"


class AudioEngineError(RuntimeError):
    """ffmpeg/ffprobe failed or is not installed."""


class AudioEngineTimeout(AudioEngineError):
    """ffmpeg/ffprobe exceeded its timeout and was killed."""


def compute_timeout(size_bytes: int) -> float:
    """Timeout in seconds for processing an input of size_bytes."""
    return min(MAX_TIMEOUT_SECONDS, max(MIN_TIMEOUT_SECONDS, size_bytes / 1_000_000 * SECONDS_PER_MB))


def clamp_silence_params(threshold_db: float, min_silence_seconds: float) -> tuple[float, float]:
    low_db, high_db = SILENCE_THRESHOLD_RANGE_DB
    low_s, high_s = SILENCE_DURATION_RANGE_S
    return (
        min(high_db, max(low_db, float(threshold_db))),
        min(high_s, max(low_s, float(min_silence_seconds))),
    )


def build_silence_filter(threshold_db: float, min_silence_seconds: float) -> str:
    # stop_periods=-1 removes every interior silence period, not just the tail
    return (
        "silenceremove="
        f"start_periods=1:start_duration=0.1:start_threshold={threshold_db:g}dB"
        f":stop_periods=-1:stop_duration={min_silence_seconds:g}:stop_threshold={threshold_db:g}dB"
    )


def _decode(output: bytes) -> str:
    return output.decode("utf-8", errors="replace").strip()


async def _run_subprocess(*cmd: str, timeout: float) -> tuple[bytes, bytes, int]:
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise AudioEngineError(f"{cmd[0]} not found: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        raise AudioEngineTimeout(f"{Path(cmd[0]).name} timed out after {timeout:.0f}s") from None
    finally:
        # Timeout or caller cancellation: never leave the process running
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
    return stdout or b"", stderr or b"", process.returncode


class AudioEngine:
    """Runs ffmpeg/ffprobe against files on disk."""

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or FFMPEG_PATH
        self.ffprobe_path = ffprobe_path or FFPROBE_PATH

    async def _ffmpeg(self, *args: str, timeout: float) -> None:
        stdout, stderr, returncode = await _run_subprocess(
            self.ffmpeg_path, "-hide_banner", "-loglevel", "error", "-y", *args, timeout=timeout
        )
        if returncode != 0:
            message = _decode(stderr) or _decode(stdout) or f"ffmpeg exited with code {returncode}"
            raise AudioEngineError(message)

    async def remove_silence(
        self,
        input_path: Path,
        output_path: Path,
        *,
        threshold_db: float,
        min_silence_seconds: float,
    ) -> None:
        """
        Remove leading and interior silence, re-encoding to Ogg/Opus.

        Parameters are clamped to [-80, -10] dB and [0.1, 10] s.
        """
        threshold_db, min_silence_seconds = clamp_silence_params(threshold_db, min_silence_seconds)
        timeout = compute_timeout(Path(input_path).stat().st_size)
        await self._ffmpeg(
            "-i", str(input_path),
            # Plaud files carry an extra data stream ffmpeg cannot process
            "-map", "0:a",
            "-af", build_silence_filter(threshold_db, min_silence_seconds),
            "-c:a", "libopus",
            "-b:a", OPUS_BITRATE,
            str(output_path),
            timeout=timeout,
        )

    async def split_segments(self, input_path: Path, output_dir: Path, segment_seconds: int) -> list[Path]:
        """
        Split into fixed-length Ogg segments without re-encoding.

        Returns:
            Segment paths in playback order (part_000.ogg, part_001.ogg, ...)
        """
        output_dir = Path(output_dir)
        timeout = compute_timeout(Path(input_path).stat().st_size)
        await self._ffmpeg(
            "-i", str(input_path),
            "-map", "0:a",
            "-f", "segment",
            "-segment_time", str(int(segment_seconds)),
            "-c", "copy",
            "-reset_timestamps", "1",
            str(output_dir / "part_%03d.ogg"),
            timeout=timeout,
        )
        return sorted(output_dir.glob("part_*.ogg"))

    async def probe_duration_ms(self, path: Path) -> int:
        """
        Actual duration of an audio file in ms.

        Tries the audio stream's duration, then the container's. Returns 0
        when neither is available or ffprobe fails.
        """
        for flag in ("-show_streams", "-show_format"):
            try:
                stdout, _, returncode = await _run_subprocess(
                    self.ffprobe_path, "-v", "quiet", "-print_format", "json", flag, str(path),
                    timeout=PROBE_TIMEOUT_SECONDS,
                )
                if returncode != 0:
                    continue
                info = json.loads(stdout or b"{}")
            except (AudioEngineError, ValueError) as exc:
                logger.debug("ffprobe %s failed for %s: %s", flag, path, exc)
                continue

            if flag == "-show_streams":
                audio = next((s for s in info.get("streams", []) if s.get("codec_type") == "audio"), {})
                raw = audio.get("duration")
            else:
                raw = info.get("format", {}).get("duration")

            try:
                seconds = float(raw or 0)
            except (TypeError, ValueError):
                seconds = 0.0
            if seconds > 0:
                return round(seconds * 1000)
        return 0

    async def trim_trailing_silence(self, audio: bytes, storage_path: str) -> bytes:
        """
        Trim trailing silence before transcription.

        Any failure, or an output under MIN_TRIM_OUTPUT_BYTES, falls back to
        the original audio.
        """
        ext = get_audio_extension(storage_path)
        tmp_dir = Path(tempfile.mkdtemp(prefix="plaud-trim-"))
        input_path = tmp_dir / f"in{ext}"
        output_path = tmp_dir / f"out{ext}"
        try:
            await asyncio.to_thread(input_path.write_bytes, audio)
            await self._ffmpeg(
                "-i", str(input_path),
                "-af", TRAILING_TRIM_FILTER,
                str(output_path),
                timeout=compute_timeout(len(audio)),
            )
            trimmed = await asyncio.to_thread(output_path.read_bytes)
        except (AudioEngineError, OSError) as exc:
            logger.warning("Silence trim failed, using original audio: %s", exc)
            return audio
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        if len(trimmed) < MIN_TRIM_OUTPUT_BYTES:
            logger.warning("Silence trim produced empty output, using original audio")
            return audio
        return trimmed
