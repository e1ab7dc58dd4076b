"""
API Routes Module.

Contains route handlers with kebab-case naming:
- sync: Plaud sync (/sync)
- recordings: Per-recording operations (/recordings/*)
- plaud: Account connection (/plaud/*)
"""

from .sync import router as sync_router
from .recordings import router as recordings_router
from .plaud import router as plaud_router

__all__ = [
    "sync_router",
    "recordings_router",
    "plaud_router",
]
