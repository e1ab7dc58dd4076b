"""
Shared utilities module.

Contains:
- logger: Non-blocking logging configuration
- encryption: Fernet encryption for stored tokens and API keys
- errors: Pipeline error taxonomy
- audio_formats: Audio MIME type / extension helpers
"""

from utils.logger import (
    configure_non_blocking_logging,
    stop_logging,
    is_logging_configured,
    DEFAULT_LOG_FORMAT,
    DEFAULT_DATE_FORMAT,
)
from utils.encryption import encrypt_secret, decrypt_secret, is_encrypted
from utils.errors import (
    PipelineError,
    NotFoundError,
    ValidationError,
    ConflictError,
    UpstreamError,
)

__all__ = [
    # Logger
    "configure_non_blocking_logging",
    "stop_logging",
    "is_logging_configured",
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_DATE_FORMAT",
    # Encryption
    "encrypt_secret",
    "decrypt_secret",
    "is_encrypted",
    # Errors
    "PipelineError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "UpstreamError",
]
