"""
Transcription configuration.

Hallucination heuristics thresholds and speech engine defaults.
"""

import os

from dotenv import load_dotenv

load_dotenv()


# =============================================================================
# SPEECH ENGINE
# =============================================================================

DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_PROVIDER = "openai"
TRANSCRIPTION_TYPE = "server"
SPEECH_REQUEST_TIMEOUT = float(os.getenv("SPEECH_REQUEST_TIMEOUT", "600"))
SPEECH_MAX_RETRIES = int(os.getenv("SPEECH_MAX_RETRIES", "2"))


# =============================================================================
# SEGMENT QUALITY FILTER
# =============================================================================

# Normal speech stays well below 3; looping segments jump to 5+
LOOP_COMPRESSION_RATIO_THRESHOLD = 5.0

# Trailing passes only look at the last N segments
TAIL_WINDOW = 8

LOW_CONFIDENCE_LOGPROB = -1.5

# Tail segment with few words stretched over a long span
DENSITY_MAX_WORDS = 4
DENSITY_MIN_DURATION_SECONDS = 5.0
DENSITY_MIN_WORDS_PER_SECOND = 0.5


# =============================================================================
# TEXT REPETITION SAFETY NET
# =============================================================================

# Texts shorter than this are never truncated
MIN_REPETITION_TEXT_LENGTH = 20

# (min window words, max window words, min consecutive repeats)
REPETITION_TIERS = (
    (1, 3, 15),
    (4, 8, 4),
    (9, 20, 3),
)


# =============================================================================
# BACKGROUND QUEUE
# =============================================================================

TRANSCRIPTION_QUEUE_MAXSIZE = int(os.getenv("TRANSCRIPTION_QUEUE_MAXSIZE", "0"))  # 0 = unbounded
