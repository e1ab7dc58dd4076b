"""
Hallucination cleanup for Whisper-style transcription output.

Whisper (and compatible models) can fall into loops where a phrase repeats
hundreds of times, or fill trailing silence with invented filler. Three
complementary passes are applied:

1. Loop truncation: verbose_json segments carry a compression_ratio that
   spikes (5+) where a loop starts. Everything from the first such segment
   on is discarded.

2. Trailing hallucination removal over the last TAIL_WINDOW segments:
   - consecutive identical text: keep the first occurrence, drop the rest
   - very negative avg_logprob (model was guessing)
   - low speech density: a few words stretched over many seconds

3. Text repetition scan: a sliding window finds a phrase repeated enough
   times that it runs to the end of the text and keeps only its first
   occurrence. This is the safety net when segment metrics are missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from transcription.transcription_config import (
    DENSITY_MAX_WORDS,
    DENSITY_MIN_DURATION_SECONDS,
    DENSITY_MIN_WORDS_PER_SECOND,
    LOOP_COMPRESSION_RATIO_THRESHOLD,
    LOW_CONFIDENCE_LOGPROB,
    MIN_REPETITION_TEXT_LENGTH,
    REPETITION_TIERS,
    TAIL_WINDOW,
)


@dataclass
class TranscriptionSegment:
    text: str
    start: Optional[float] = None
    end: Optional[float] = None
    avg_logprob: Optional[float] = None
    compression_ratio: Optional[float] = None
    no_speech_prob: Optional[float] = None

    @classmethod
    def from_obj(cls, segment: Any) -> "TranscriptionSegment":
        """Build from an SDK segment object or a plain dict."""
        if isinstance(segment, Mapping):
            get = segment.get
        else:
            def get(name, default=None):
                return getattr(segment, name, default)
        return cls(
            text=get("text") or "",
            start=get("start"),
            end=get("end"),
            avg_logprob=get("avg_logprob"),
            compression_ratio=get("compression_ratio"),
            no_speech_prob=get("no_speech_prob"),
        )

    @property
    def has_metrics(self) -> bool:
        return self.compression_ratio is not None or self.avg_logprob is not None or self.start is not None


def find_loop_start_index(segments: Sequence[TranscriptionSegment]) -> int:
    """Index of the first loop segment, or len(segments) when there is none."""
    for index, segment in enumerate(segments):
        if (segment.compression_ratio or 0) > LOOP_COMPRESSION_RATIO_THRESHOLD:
            return index
    return len(segments)


def _word_count(text: str) -> int:
    return len(text.split())


def remove_trailing_hallucinations(segments: Sequence[TranscriptionSegment]) -> list[TranscriptionSegment]:
    end = len(segments)

    # Pass 1: first consecutive duplicate in the tail window. The whole run
    # collapses to its first occurrence and everything after it goes.
    for i in range(max(0, end - TAIL_WINDOW), end - 1):
        text = segments[i].text.strip()
        if text and text == segments[i + 1].text.strip():
            run_start = i
            while run_start > 0 and segments[run_start - 1].text.strip() == text:
                run_start -= 1
            end = run_start + 1
            break

    # Pass 2: low-confidence tail
    while end > 0 and (segments[end - 1].avg_logprob or 0) < LOW_CONFIDENCE_LOGPROB:
        end -= 1

    # Pass 3: low speech density. Only short phrases qualify; a slow singer
    # can reach 0.5 w/s with longer lines.
    while end > 0:
        segment = segments[end - 1]
        if segment.start is None or segment.end is None:
            break
        duration = segment.end - segment.start
        words = _word_count(segment.text)
        if (
            words <= DENSITY_MAX_WORDS
            and duration >= DENSITY_MIN_DURATION_SECONDS
            and words / duration < DENSITY_MIN_WORDS_PER_SECOND
        ):
            end -= 1
            continue
        break

    return list(segments[:end])


def filter_segments_by_quality(segments: Sequence[TranscriptionSegment]) -> str:
    """Truncate at the first loop, strip trailing hallucinations, join the rest."""
    before_loop = segments[: find_loop_start_index(segments)]
    cleaned = remove_trailing_hallucinations(before_loop)
    return " ".join(text for text in (s.text.strip() for s in cleaned) if text)


def remove_repetitions(text: str) -> str:
    """
    Truncate a repetition loop that runs to the end of the text.

    Tiers require more repeats for shorter phrases: legitimate refrains can
    repeat a syllable 6-8 times, real loops run into the hundreds.
    """
    if not text or len(text) < MIN_REPETITION_TEXT_LENGTH:
        return text

    words = text.split()
    lowered = [word.lower() for word in words]

    for min_w, max_w, min_reps in REPETITION_TIERS:
        for w in range(min_w, max_w + 1):
            if len(words) < w * min_reps:
                continue
            for start in range(0, len(words) - w * min_reps + 1):
                phrase = lowered[start:start + w]
                reps = 1
                pos = start + w
                while pos + w <= len(words) and lowered[pos:pos + w] == phrase:
                    reps += 1
                    pos += w
                # Allow a partial trailing fragment shorter than one window
                if reps >= min_reps and pos >= len(words) - w:
                    return " ".join(words[:start + w])

    return text


def post_process_transcription(
    raw_text: str,
    segments: Optional[Iterable[Any]] = None,
) -> str:
    """
    Clean a transcription.

    The segment filter runs when any segment carries quality metrics; if it
    discards everything the raw text is kept. The repetition scan always runs.
    """
    text = raw_text
    parsed = [s if isinstance(s, TranscriptionSegment) else TranscriptionSegment.from_obj(s) for s in segments or []]

    if parsed and any(segment.has_metrics for segment in parsed):
        filtered = filter_segments_by_quality(parsed)
        text = filtered or raw_text

    return remove_repetitions(text)
