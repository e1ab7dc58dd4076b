"""
S3-compatible storage provider.

Works with AWS S3, Cloudflare R2, MinIO, etc. boto3 is synchronous, so every
call runs in a worker thread.
"""

import asyncio
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from storage.base import StorageError, StorageProvider
from storage.storage_config import (
    S3_ACCESS_KEY_ID,
    S3_BUCKET,
    S3_ENDPOINT,
    S3_REGION,
    S3_SECRET_ACCESS_KEY,
)

logger = logging.getLogger(__name__)


class S3Storage(StorageProvider):
    """Stores recordings in an S3-compatible bucket"""

    storage_type = "s3"

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        endpoint: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or S3_BUCKET
        if not self.bucket:
            raise ValueError("S3_BUCKET not configured")

        endpoint = endpoint or S3_ENDPOINT
        if client is None:
            # Custom endpoints (MinIO, R2) need path-style addressing
            config = Config(s3={"addressing_style": "path"}) if endpoint else None
            client = boto3.client(
                "s3",
                region_name=region or S3_REGION,
                endpoint_url=endpoint,
                aws_access_key_id=access_key_id or S3_ACCESS_KEY_ID,
                aws_secret_access_key=secret_access_key or S3_SECRET_ACCESS_KEY,
                config=config,
            )
        self.client = client

        logger.info("S3 storage initialized: bucket=%s, endpoint=%s", self.bucket, endpoint or "aws")

    async def upload_file(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload file to S3: {exc}") from exc
        logger.info("Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(data))
        return key

    async def download_file(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response.get("Body")
            if body is None:
                raise StorageError("Empty response body")
            return body.read()

        try:
            return await asyncio.to_thread(_read)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to download file from S3: {exc}") from exc

    async def delete_file(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete file from S3: {exc}") from exc
        logger.info("Deleted s3://%s/%s", self.bucket, key)

    async def get_signed_url(self, key: str, expires_in: int) -> str:
        try:
            return await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to generate signed URL: {exc}") from exc

    async def test_connection(self) -> bool:
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
            return True
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 connection test failed for %s: %s", self.bucket, exc)
            return False
