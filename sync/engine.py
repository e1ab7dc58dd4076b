"""
Plaud -> local recording sync.

Pages through the remote recording list newest first and reconciles it with
the recordings table:
- unchanged version stamp: skipped, no I/O
- new or changed: download, store under "{user_id}/{plaud_file_id}.mp3",
  insert or update the row

Items are processed in concurrent batches with a barrier per batch. Paging
stops at a short page, after consecutive pages with nothing new, or at the
page cap.

sync() never raises for expected conditions: per-item failures are collected
in SyncResult.errors, and a connection or listing failure ends the sync with
a single "Sync failed: ..." error.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from plaud.client import PlaudClient, create_plaud_client
from plaud.models import PlaudRecording
from plaud.plaud_config import SYNC_BATCH_SIZE, SYNC_MAX_IDLE_PAGES, SYNC_MAX_PAGES, SYNC_PAGE_SIZE
from storage.base import StorageProvider
from sync.models import SyncResult
from sync.notifications import BarkNotifier, EmailNotifier
from utils.errors import ConflictError

logger = logging.getLogger(__name__)

NEW = "new"
UPDATED = "updated"
SKIPPED = "skipped"

DOWNLOAD_EXTENSION = "mp3"
DOWNLOAD_CONTENT_TYPE = "audio/mpeg"


def recording_storage_key(user_id: str, plaud_file_id: str) -> str:
    return f"{user_id}/{plaud_file_id}.{DOWNLOAD_EXTENSION}"


class SyncEngine:
    """Synchronizes a user's Plaud recordings into local storage."""

    def __init__(
        self,
        connections,
        recordings,
        settings,
        storage: StorageProvider,
        *,
        client_factory: Callable[..., PlaudClient] = create_plaud_client,
        transcription_queue=None,
        email_notifier: Optional[EmailNotifier] = None,
        bark_notifier: Optional[BarkNotifier] = None,
        page_size: int = SYNC_PAGE_SIZE,
        max_pages: int = SYNC_MAX_PAGES,
        batch_size: int = SYNC_BATCH_SIZE,
    ):
        self.connections = connections
        self.recordings = recordings
        self.settings = settings
        self.storage = storage
        self.client_factory = client_factory
        self.transcription_queue = transcription_queue
        self.email_notifier = email_notifier
        self.bark_notifier = bark_notifier
        self.page_size = page_size
        self.max_pages = max_pages
        self.batch_size = batch_size

    async def sync(self, user_id: str) -> SyncResult:
        result = SyncResult()

        try:
            connection = await self.connections.get_connection_for_user(user_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Sync for %s could not load connection: %s", user_id, exc, exc_info=True)
            result.errors.append(f"Sync failed: {exc}")
            return result

        if not connection:
            result.errors.append("No Plaud connection found")
            return result

        prefs = None
        new_ids: list[str] = []
        new_names: list[str] = []
        try:
            prefs = await self.settings.get_settings(user_id)
            async with self.client_factory(connection["bearer_token"], connection["api_base"]) as client:
                await self._sync_pages(client, user_id, result, new_ids, new_names)
        except Exception as exc:  # noqa: BLE001
            logger.error("Sync for %s aborted: %s", user_id, exc, exc_info=True)
            result.errors.append(f"Sync failed: {exc}")

        try:
            await self.connections.touch_last_sync(connection["id"])
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to update last_sync for %s: %s", user_id, exc, exc_info=True)
            result.errors.append(f"Failed to update last sync time: {exc}")

        if prefs is not None and new_names:
            await self._notify(user_id, prefs, new_names, result)

        if prefs is not None and prefs.auto_transcribe and new_ids and self.transcription_queue is not None:
            self.transcription_queue.enqueue(user_id, new_ids)
            result.pending_transcription = list(new_ids)

        logger.info(
            "Sync for %s: %d new, %d updated, %d skipped, %d error(s)",
            user_id,
            result.new_recordings,
            result.updated_recordings,
            result.skipped_recordings,
            len(result.errors),
        )
        return result

    # =========================================================================
    # Paging
    # =========================================================================

    async def _sync_pages(
        self,
        client: PlaudClient,
        user_id: str,
        result: SyncResult,
        new_ids: list[str],
        new_names: list[str],
    ) -> None:
        idle_pages = 0

        for page in range(self.max_pages):
            response = await client.get_recordings(
                skip=page * self.page_size,
                limit=self.page_size,
                sort_by="edit_time",
                is_desc=True,
            )
            items = response.data_file_list
            changed = 0

            for start in range(0, len(items), self.batch_size):
                batch = items[start:start + self.batch_size]
                outcomes = await asyncio.gather(
                    *(self._sync_item(client, user_id, item) for item in batch),
                    return_exceptions=True,
                )
                for item, outcome in zip(batch, outcomes):
                    if isinstance(outcome, Exception):
                        logger.error("Failed to sync recording %s: %s", item.id, outcome, exc_info=outcome)
                        result.errors.append(f"Failed to sync recording {item.filename}: {outcome}")
                        continue
                    if isinstance(outcome, BaseException):
                        raise outcome

                    status, recording_id = outcome
                    if status == NEW:
                        result.new_recordings += 1
                        new_ids.append(recording_id)
                        new_names.append(item.filename)
                        changed += 1
                    elif status == UPDATED:
                        result.updated_recordings += 1
                        changed += 1
                    else:
                        result.skipped_recordings += 1

            if len(items) < self.page_size:
                break

            idle_pages = idle_pages + 1 if changed == 0 else 0
            if idle_pages >= SYNC_MAX_IDLE_PAGES:
                logger.debug("Sync for %s: %d idle pages, remote list is current", user_id, idle_pages)
                break

    async def _sync_item(self, client: PlaudClient, user_id: str, item: PlaudRecording) -> tuple[str, str]:
        existing = await self.recordings.get_by_plaud_file_id(item.id)
        version = item.version_key

        if existing and existing.get("plaud_version") == version:
            return SKIPPED, existing["id"]
        if existing and existing.get("user_id") != user_id:
            raise ConflictError(f"Recording {item.id} belongs to another user")

        audio = await client.download_recording(item.id, prefer_opus=False)
        key = recording_storage_key(user_id, item.id)
        await self.storage.upload_file(key, audio, DOWNLOAD_CONTENT_TYPE)

        data = self._recording_data(user_id, item, key)
        if existing:
            await self.recordings.update_recording(existing["id"], data)
            logger.info("Updated recording %s (version %s)", item.id, version)
            return UPDATED, existing["id"]

        recording_id = await self.recordings.insert_recording(data)
        return NEW, recording_id

    def _recording_data(self, user_id: str, item: PlaudRecording, key: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "device_sn": item.serial_number,
            "plaud_file_id": item.id,
            "filename": item.filename,
            "duration": item.duration,
            "start_time": item.start_time,
            "end_time": item.end_time,
            "filesize": item.filesize,
            "file_md5": item.file_md5,
            "storage_type": self.storage.storage_type,
            "storage_path": key,
            "downloaded_at": datetime.now(timezone.utc),
            "plaud_version": item.version_key,
            "timezone": item.timezone,
            "zonemins": item.zonemins,
            "scene": item.scene,
            "is_trash": item.is_trash,
        }

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _notify(self, user_id: str, prefs, new_names: list[str], result: SyncResult) -> None:
        count = len(new_names)

        if prefs.email_notifications and self.email_notifier is not None:
            try:
                email = prefs.notification_email or await self.settings.get_user_email(user_id)
                if email and not await self.email_notifier.send(email, count, new_names):
                    result.errors.append("Email notification failed")
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to send email notification: %s", exc, exc_info=True)
                result.errors.append("Email notification failed")

        if prefs.bark_notifications and prefs.bark_push_url and self.bark_notifier is not None:
            try:
                if not await self.bark_notifier.send(prefs.bark_push_url, count, new_names):
                    result.errors.append("Bark notification failed or timed out")
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to send Bark notification: %s", exc, exc_info=True)
                result.errors.append("Bark notification failed")
