"""
Non-Blocking Logging Configuration

Routes every log record through a QueueHandler so that the asyncio event loop
never blocks on console writes while a sync, transform or transcription job
is running. A QueueListener thread owns the actual StreamHandler.

Usage:
    from utils.logger import configure_non_blocking_logging

    configure_non_blocking_logging()  # level from LOG_LEVEL, default INFO
"""

import atexit
import logging
import logging.handlers
import os
import queue
import sys
from typing import Optional

_log_listener: Optional[logging.handlers.QueueListener] = None

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

# Third-party loggers that flood INFO with per-request chatter
NOISY_LOGGERS = (
    "httpcore",
    "httpx",
    "asyncio",
    "urllib3",
    "botocore",
    "boto3",
    "s3transfer",
    "openai",
)

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def resolve_log_level(value: str | int | None) -> int:
    """Resolve a level name ("debug", "INFO") or number into a logging level."""
    if value is None:
        return logging.INFO
    if isinstance(value, int):
        return value

    stripped = value.strip().upper()
    if stripped in _LEVEL_MAP:
        return _LEVEL_MAP[stripped]

    try:
        return int(stripped)
    except ValueError:
        return logging.INFO


def configure_non_blocking_logging(
    level: str | int | None = None,
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    silence_noisy_libs: bool = True,
) -> logging.handlers.QueueListener:
    """
    Install a QueueHandler on the root logger and start its listener thread.

    Calling this twice replaces the previous listener.

    Args:
        level: Log level name or number (default: LOG_LEVEL env var or INFO)
        log_format: Format string for log messages
        date_format: Format string for timestamps
        silence_noisy_libs: Set chatty HTTP/SDK loggers to WARNING

    Returns:
        The running QueueListener
    """
    global _log_listener

    if level is None:
        level = os.getenv("LOG_LEVEL")
    resolved = resolve_log_level(level)

    if _log_listener is not None:
        stop_logging()

    log_queue: queue.Queue = queue.Queue(-1)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))

    listener = logging.handlers.QueueListener(
        log_queue,
        console_handler,
        respect_handler_level=True,
    )
    listener.start()

    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setLevel(resolved)

    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers.clear()
    root.addHandler(queue_handler)

    if silence_noisy_libs:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    atexit.register(stop_logging)
    _log_listener = listener
    return listener


def stop_logging() -> None:
    """Stop the background logging thread and flush remaining records."""
    global _log_listener
    if _log_listener is None:
        return
    try:
        _log_listener.stop()
    except RuntimeError:
        # Listener thread was never started or already joined
        pass
    _log_listener = None


def is_logging_configured() -> bool:
    """Check if non-blocking logging has been configured."""
    return _log_listener is not None


__all__ = [
    "configure_non_blocking_logging",
    "resolve_log_level",
    "stop_logging",
    "is_logging_configured",
    "DEFAULT_LOG_FORMAT",
    "DEFAULT_DATE_FORMAT",
]
