"""
Recording sync module.

Contains:
- engine: SyncEngine (Plaud -> storage + recordings table)
- models: SyncResult
- notifications: Bark and e-mail notifiers for new recordings
"""

from sync.engine import SyncEngine, recording_storage_key
from sync.models import SyncResult
from sync.notifications import BarkNotifier, EmailNotifier

__all__ = [
    "SyncEngine",
    "recording_storage_key",
    "SyncResult",
    "BarkNotifier",
    "EmailNotifier",
]
