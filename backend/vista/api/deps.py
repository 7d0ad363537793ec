"""
Service dependencies for API routes.

Tests override these to swap in fake storage and a mocked Notion transport.
"""

from typing import Annotated, Callable

from fastapi import Depends

from vista.services.content_pipeline import ContentPipeline
from vista.services.notion_client import NotionClient
from vista.services.processors.image_backup import ImageAssetBackupManager
from vista.services.storage import get_asset_storage


def get_backup_manager() -> ImageAssetBackupManager:
    return ImageAssetBackupManager(get_asset_storage())


def get_notion_factory() -> Callable[[str], NotionClient]:
    return NotionClient


def get_content_pipeline(
    backup_manager: Annotated[ImageAssetBackupManager, Depends(get_backup_manager)],
) -> ContentPipeline:
    return ContentPipeline(backup_manager)


Pipeline = Annotated[ContentPipeline, Depends(get_content_pipeline)]
NotionFactory = Annotated[Callable[[str], NotionClient], Depends(get_notion_factory)]
