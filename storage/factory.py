"""Builds the configured blob storage provider."""

import logging
from typing import Optional

from storage.base import StorageProvider
from storage.storage_config import DEFAULT_STORAGE_TYPE

logger = logging.getLogger(__name__)


def create_storage_provider(storage_type: Optional[str] = None) -> StorageProvider:
    """
    Create a storage provider.

    Args:
        storage_type: 'local' or 's3' (defaults to DEFAULT_STORAGE_TYPE)

    Raises:
        ValueError: Unknown storage type or missing S3 configuration
    """
    storage_type = (storage_type or DEFAULT_STORAGE_TYPE).lower()

    if storage_type == "local":
        from storage.local import LocalStorage
        return LocalStorage()
    if storage_type == "s3":
        # boto3 import is deferred so local deployments never load it
        from storage.s3 import S3Storage
        return S3Storage()

    raise ValueError(f"Unknown storage type: {storage_type}")
