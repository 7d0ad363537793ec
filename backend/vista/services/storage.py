"""
Durable asset storage.

Notion serves uploaded files from signed URLs that expire after about an
hour, so media is copied into our own S3-compatible bucket. The backup
manager only depends on the AssetStorage protocol; S3AssetStorage is the
production implementation.
"""

import asyncio
import logging
from typing import Optional, Protocol

import boto3

from vista.core.config import settings

logger = logging.getLogger(__name__)


class AssetStorage(Protocol):
    """Anything that can store bytes under a key and return a public URL."""

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        ...


class S3AssetStorage:
    """
    S3 (or MinIO / Supabase S3 gateway) backed asset storage.

    boto3 is synchronous; uploads run in a worker thread so the event loop
    keeps serving other pages.
    """

    def __init__(
        self,
        bucket: Optional[str] = None,
        endpoint: Optional[str] = None,
        region: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or settings.ASSET_BUCKET_NAME
        self.endpoint = endpoint or settings.ASSET_STORAGE_ENDPOINT
        self.region = region or settings.ASSET_STORAGE_REGION
        self.public_base_url = public_base_url or settings.ASSET_PUBLIC_BASE_URL
        self.client = client or boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            aws_access_key_id=access_key or settings.ASSET_STORAGE_ACCESS_KEY,
            aws_secret_access_key=secret_key or settings.ASSET_STORAGE_SECRET_KEY,
            region_name=self.region,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        # Same key for the same (page, index), so re-syncs overwrite in place
        await asyncio.to_thread(self._put_object, key, data, content_type)
        logger.debug(f"Stored asset s3://{self.bucket}/{key} ({len(data)} bytes)")
        return self.public_url(key)


_default_storage: Optional[S3AssetStorage] = None


def get_asset_storage() -> S3AssetStorage:
    """Process-wide storage instance (one boto3 client per worker)."""
    global _default_storage
    if _default_storage is None:
        _default_storage = S3AssetStorage()
    return _default_storage
