"""
Block Normalizer

Converts a Notion block tree (blocks with their children already merged
under a ``children`` key, see NotionClient.fetch_block_tree) into the
ContentBlock tree stored on ContentItem.content.

Dispatch:
---------
Each block is classified into a BlockKind and handed to the matching
``_normalize_<kind>`` method:

- TEXT         paragraph, headings, list items, to_do, toggle, quote, callout, code
- MEDIA        image, video, embed, file, pdf, audio
- TABLE        table (its table_row children are folded into ``table``)
- TABLE_ROW    a row met outside a table
- CONTAINER    column_list, column, synced_block, template
- LEAF         divider and friends
- PASSTHROUGH  anything else; id/type kept, text extracted if present

Children are normalized recursively and stay nested under their parent.
Traversal is sequential so media indices follow document order.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from vista.schemas.blocks import (
    INDEXED_MEDIA_TYPES,
    BlockKind,
    ContentBlock,
    RichTextRun,
    TableData,
    classify_block_type,
)
from vista.services.processors.annotations import extract_text_and_annotations
from vista.services.processors.image_backup import ImageAssetBackupManager, ImageIndexScope
from vista.services.processors.tables import process_row, process_table

logger = logging.getLogger(__name__)

LIST_TYPES = {
    "bulleted_list_item": "bulleted_list",
    "numbered_list_item": "numbered_list",
}


def _is_heic(url: Optional[str]) -> bool:
    if not url:
        return False
    lowered = url.lower().split("?", 1)[0]
    return lowered.endswith(".heic") or "/heic" in lowered or "heic." in lowered


class BlockNormalizer:
    """
    Recursive Notion block → ContentBlock converter.

    Example:
        >>> normalizer = BlockNormalizer(backup_manager)
        >>> scope = backup_manager.new_scope(profile.id, page_id)
        >>> blocks = await normalizer.normalize_blocks(raw_blocks, scope)
    """

    def __init__(self, backup_manager: ImageAssetBackupManager):
        self.backup_manager = backup_manager
        self._handlers: dict[BlockKind, Callable[[dict[str, Any], ImageIndexScope], Awaitable[ContentBlock]]] = {
            BlockKind.TEXT: self._normalize_text,
            BlockKind.MEDIA: self._normalize_media,
            BlockKind.TABLE: self._normalize_table,
            BlockKind.TABLE_ROW: self._normalize_table_row,
            BlockKind.CONTAINER: self._normalize_container,
            BlockKind.LEAF: self._normalize_leaf,
            BlockKind.PASSTHROUGH: self._normalize_passthrough,
        }

    async def normalize_blocks(self, raw_blocks: Any, scope: ImageIndexScope) -> list[ContentBlock]:
        """Normalize a list of sibling blocks, in order."""
        if not isinstance(raw_blocks, list):
            return []

        normalized = []
        for raw in raw_blocks:
            if not isinstance(raw, dict):
                logger.warning(f"Skipping non-object block on page {scope.page_id}: {type(raw).__name__}")
                continue
            normalized.append(await self.normalize(raw, scope))
        return normalized

    async def normalize(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        """
        Normalize one block and its children.

        Never raises for unknown or malformed blocks; they degrade to a
        passthrough node.
        """
        kind = classify_block_type(raw.get("type"))
        handler = self._handlers[kind]

        try:
            return await handler(raw, scope)
        except Exception as e:
            logger.warning(
                f"Error normalizing block {raw.get('id')} of type {raw.get('type')}: {e}",
                exc_info=True,
            )
            if kind is BlockKind.PASSTHROUGH:
                return ContentBlock(id=raw.get("id"), type=str(raw.get("type") or "unknown"))
            return await self._normalize_passthrough(raw, scope)

    # ========================================
    # Helpers
    # ========================================

    def _base(self, raw: dict[str, Any]) -> ContentBlock:
        return ContentBlock(id=raw.get("id"), type=str(raw.get("type") or "unknown"))

    def _payload(self, raw: dict[str, Any]) -> dict[str, Any]:
        payload = raw.get(raw.get("type") or "")
        return payload if isinstance(payload, dict) else {}

    async def _children(self, raw: dict[str, Any], scope: ImageIndexScope) -> Optional[list[ContentBlock]]:
        children = raw.get("children")
        if not children:
            return None
        return await self.normalize_blocks(children, scope)

    def _set_text(self, block: ContentBlock, raw_runs: Any) -> None:
        block.text, block.annotations = extract_text_and_annotations(raw_runs)

    # ========================================
    # Handlers
    # ========================================

    async def _normalize_text(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        payload = self._payload(raw)
        self._set_text(block, payload.get("rich_text"))

        if block.type in LIST_TYPES:
            block.is_list_item = True
            block.list_type = LIST_TYPES[block.type]
        elif block.type == "to_do":
            block.checked = bool(payload.get("checked"))
        elif block.type == "callout":
            block.icon = payload.get("icon")
        elif block.type == "code":
            block.language = payload.get("language")

        block.children = await self._children(raw, scope)
        return block

    async def _normalize_media(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        payload = self._payload(raw)
        block.media_type = block.type

        if block.type == "embed":
            block.media_url = payload.get("url")
            block.media_source = "external"
        else:
            source = payload.get("type")
            source_data = payload.get(source) if source else None
            if isinstance(source_data, dict):
                block.media_url = source_data.get("url")
                block.media_expiry_time = source_data.get("expiry_time")
            block.media_source = source

        if payload.get("caption"):
            block.caption = "".join(run.plain_text for run in RichTextRun.parse_many(payload["caption"]))

        if block.type == "image":
            width, height = payload.get("width"), payload.get("height")
            if isinstance(width, int) and isinstance(height, int) and height > 0:
                block.width = width
                block.height = height
                block.aspect_ratio = width / height
            if _is_heic(block.media_url):
                block.is_heic = True

        if block.type in INDEXED_MEDIA_TYPES:
            await self.backup_manager.backup_block(block, scope)

        block.children = await self._children(raw, scope)
        return block

    async def _normalize_table(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        rows = raw.get("children") or []
        block.table = process_table(raw, [row for row in rows if isinstance(row, dict)])
        return block

    async def _normalize_table_row(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        row = process_row(raw)
        block.table = TableData(width=len(row.cells), rows=[row])
        return block

    async def _normalize_container(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        block.children = await self._children(raw, scope)
        return block

    async def _normalize_leaf(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        return self._base(raw)

    async def _normalize_passthrough(self, raw: dict[str, Any], scope: ImageIndexScope) -> ContentBlock:
        block = self._base(raw)
        payload = self._payload(raw)
        if "rich_text" in payload:
            self._set_text(block, payload.get("rich_text"))
        block.children = await self._children(raw, scope)
        return block
