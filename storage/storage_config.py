"""
Blob storage configuration.

DEFAULT_STORAGE_TYPE selects the provider ('local' or 's3'). Local storage
writes under LOCAL_STORAGE_PATH; S3 settings apply to any S3-compatible
service (AWS, R2, MinIO).
"""

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_STORAGE_TYPE = os.getenv("DEFAULT_STORAGE_TYPE", "local").lower()
LOCAL_STORAGE_PATH = os.getenv("LOCAL_STORAGE_PATH", "./storage-data")

S3_ENDPOINT = os.getenv("S3_ENDPOINT") or None
S3_BUCKET = os.getenv("S3_BUCKET")
S3_REGION = os.getenv("S3_REGION", "us-east-1")
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID")
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY")

# Signed URL lifetime handed to the player
SIGNED_URL_EXPIRES_IN = int(os.getenv("SIGNED_URL_EXPIRES_IN", "3600"))

# Route serving local blobs (signed URLs for local storage point here)
LOCAL_AUDIO_ROUTE = "/recordings/audio"
