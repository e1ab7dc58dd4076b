"""
Background transcription queue.

Sync hands newly created recordings to this queue and returns immediately,
so sync latency never includes transcription latency. A single worker task
drains the queue sequentially. Failures are logged and never reach the
submitter.

Usage:
    queue = TranscriptionQueue(pipeline.transcribe)
    queue.start()
    queue.enqueue(user_id, recording_ids)
    ...
    await queue.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from transcription.transcription_config import TRANSCRIPTION_QUEUE_MAXSIZE

logger = logging.getLogger(__name__)

TranscribeFn = Callable[[str, str], Awaitable[object]]


class TranscriptionQueue:
    """Sequential asyncio worker for (user_id, recording_id) jobs."""

    def __init__(self, transcribe: TranscribeFn, maxsize: int = TRANSCRIPTION_QUEUE_MAXSIZE) -> None:
        self._transcribe = transcribe
        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="transcription-queue")
        logger.info("Transcription queue worker started")

    async def stop(self) -> None:
        """Cancel the worker. Jobs still queued are dropped (and logged)."""
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        if not self._queue.empty():
            logger.warning("Transcription queue stopped with %d pending job(s)", self._queue.qsize())
        logger.info("Transcription queue worker stopped")

    def enqueue(self, user_id: str, recording_ids: Iterable[str]) -> int:
        """Queue recordings for transcription. Returns the number queued."""
        count = 0
        for recording_id in recording_ids:
            try:
                self._queue.put_nowait((user_id, recording_id))
                count += 1
            except asyncio.QueueFull:
                logger.error("Transcription queue full, dropping recording %s", recording_id)
        if count:
            logger.info("Queued %d recording(s) for transcription (user=%s)", count, user_id)
        return count

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            user_id, recording_id = await self._queue.get()
            try:
                outcome = await self._transcribe(user_id, recording_id)
                if getattr(outcome, "success", True) is False:
                    logger.error(
                        "Background transcription failed for %s: %s",
                        recording_id,
                        getattr(outcome, "error", None),
                    )
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.error("Background transcription crashed for %s: %s", recording_id, exc, exc_info=True)
            finally:
                self._queue.task_done()
