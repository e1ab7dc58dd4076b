"""
Blob storage module.

Contains:
- base: StorageProvider interface and StorageError
- local: Local filesystem provider
- s3: S3-compatible provider (boto3)
- factory: create_storage_provider
"""

from storage.base import StorageError, StorageProvider
from storage.factory import create_storage_provider

__all__ = [
    "StorageError",
    "StorageProvider",
    "create_storage_provider",
]
