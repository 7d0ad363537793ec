"""
Image/video asset backup with deterministic per-page indexing.

Index Scope:
------------
Every page is processed with its own ImageIndexScope. The scope hands out
0, 1, 2, ... to image and video blocks in the order the traversal meets
them, so a block's index is a pure function of its position in the page.
Reprocessing a page (retry, re-sync, webhook) creates a fresh scope and
reproduces the same indices, and therefore the same storage keys.

Scopes are never shared between pages, so pages can be processed
concurrently. Within one page the traversal is sequential.

Storage Key:
------------
    <tenant>/<page>/<media_type>-<index>.<ext>
    e.g. 12/0f3c.../image-0.png

Failure Policy:
---------------
A failed download or upload is logged and the block keeps the URL it came
with. The index is still consumed, so later blocks keep their positions.
"""

import logging
import mimetypes
import posixpath
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from vista.core.config import settings
from vista.core.exceptions import AssetBackupError
from vista.schemas.blocks import ContentBlock
from vista.services.storage import AssetStorage

logger = logging.getLogger(__name__)

# Only Notion-hosted uploads expire; external URLs are kept as they are
BACKUP_SOURCE_TYPES = frozenset({"file"})

DEFAULT_EXTENSION = "bin"


@dataclass
class ImageIndexScope:
    """Sequential media index for one page within one processing run."""

    tenant_id: int | str
    page_id: str
    _next_index: int = field(default=0, repr=False)

    def next_index(self) -> int:
        """Return the current index and advance."""
        index = self._next_index
        self._next_index += 1
        return index

    @property
    def issued(self) -> int:
        """How many indices have been handed out so far."""
        return self._next_index


def guess_extension(url: str, content_type: Optional[str]) -> str:
    """
    File extension for a stored asset.

    Prefers the extension in the source URL path (signed S3 URLs keep the
    original file name), then the response content type.
    """
    path_ext = posixpath.splitext(urlparse(url).path)[1].lstrip(".").lower()
    if path_ext and path_ext.isalnum() and len(path_ext) <= 5:
        return path_ext

    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        guessed = mimetypes.guess_extension(mime)
        if guessed:
            return guessed.lstrip(".")
        if "/" in mime:
            subtype = mime.split("/", 1)[1]
            if subtype.isalnum():
                return subtype

    return DEFAULT_EXTENSION


def asset_key(tenant_id: int | str, page_id: str, media_type: str, index: int | str, extension: str) -> str:
    return f"{tenant_id}/{page_id}/{media_type}-{index}.{extension}"


class ImageAssetBackupManager:
    """
    Copies Notion-hosted media into durable storage and rewrites block URLs.

    Usage:
    ------
        manager = ImageAssetBackupManager(storage, http_client)
        scope = manager.new_scope(profile.id, page_id)
        await manager.backup_block(block, scope)
    """

    def __init__(self, storage: AssetStorage, http_client: Optional[httpx.AsyncClient] = None):
        self.storage = storage
        self._http_client = http_client

    def new_scope(self, tenant_id: int | str, page_id: str) -> ImageIndexScope:
        return ImageIndexScope(tenant_id=tenant_id, page_id=page_id)

    async def _download(self, url: str) -> tuple[bytes, Optional[str]]:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=settings.ASSET_DOWNLOAD_TIMEOUT)
            else:
                async with httpx.AsyncClient(follow_redirects=True) as client:
                    response = await client.get(url, timeout=settings.ASSET_DOWNLOAD_TIMEOUT)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise AssetBackupError(f"Could not download {url}: {e}") from e

        return response.content, response.headers.get("content-type")

    async def store_from_url(
        self,
        url: str,
        tenant_id: int | str,
        page_id: str,
        media_type: str,
        index: int | str,
    ) -> str:
        """
        Download ``url`` and store it under the deterministic key.

        Raises:
            AssetBackupError: If the download or upload fails
        """
        data, content_type = await self._download(url)
        extension = guess_extension(url, content_type)
        key = asset_key(tenant_id, page_id, media_type, index, extension)

        try:
            return await self.storage.put(
                key,
                data,
                content_type or mimetypes.guess_type(f"x.{extension}")[0] or "application/octet-stream",
            )
        except Exception as e:
            raise AssetBackupError(f"Could not store {key}: {e}") from e

    async def backup_block(self, block: ContentBlock, scope: ImageIndexScope) -> ContentBlock:
        """
        Assign the next index to a media block and back up its asset.

        Must be called once per image/video block, in document order.
        """
        index = scope.next_index()
        block.media_index = index

        if not block.media_url or block.media_source not in BACKUP_SOURCE_TYPES:
            return block

        try:
            durable_url = await self.store_from_url(
                block.media_url,
                scope.tenant_id,
                scope.page_id,
                block.media_type or block.type,
                index,
            )
        except AssetBackupError as e:
            logger.warning(
                f"Asset backup failed for {block.type} {index} on page {scope.page_id}: {e}"
            )
            return block

        block.media_url = durable_url
        block.media_source = "stored"
        block.media_expiry_time = None
        return block

    async def backup_cover(self, cover: Optional[dict[str, Any]], scope: ImageIndexScope) -> Optional[str]:
        """
        Resolve a page cover to a durable URL.

        Covers are stored under ``cover-0`` and do not consume a block index.
        """
        if not isinstance(cover, dict):
            return None

        source = cover.get("type")
        url = (cover.get(source) or {}).get("url") if source else None
        if not url:
            return None
        if source not in BACKUP_SOURCE_TYPES:
            return url

        try:
            return await self.store_from_url(url, scope.tenant_id, scope.page_id, "cover", 0)
        except AssetBackupError as e:
            logger.warning(f"Cover backup failed on page {scope.page_id}: {e}")
            return url
