"""
Pydantic schemas for Notion input fragments and the normalized block tree.

Input side:
-----------
- RichTextRun: one styled text fragment from a Notion ``rich_text`` array
- BlockKind: closed classification of Notion block types

Output side (stored in ContentItem.content):
--------------------------------------------
- Annotation: style/position record over a block's concatenated text
- TableCell / TableRow / TableData: processed table grid
- ContentBlock: one normalized block with nested children
"""

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ========================================
# Input: styled text runs
# ========================================


class RunStyle(BaseModel):
    """The ``annotations`` object of a Notion rich text item."""

    model_config = ConfigDict(extra="ignore")

    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: str = "default"


class RichTextRun(BaseModel):
    """One item of a Notion ``rich_text`` array."""

    model_config = ConfigDict(extra="ignore")

    plain_text: str = ""
    href: Optional[str] = None
    annotations: RunStyle = Field(default_factory=RunStyle)

    @classmethod
    def parse_many(cls, raw_runs: Any) -> list["RichTextRun"]:
        """Parse a raw rich_text array; anything that is not a dict becomes an empty run."""
        if not isinstance(raw_runs, list):
            return []
        runs = []
        for raw in raw_runs:
            if isinstance(raw, dict):
                data = dict(raw)
                # Notion sends "annotations": null on some synthetic runs
                if data.get("annotations") is None:
                    data.pop("annotations", None)
                if data.get("plain_text") is None:
                    data["plain_text"] = ""
                runs.append(cls.model_validate(data))
            else:
                runs.append(cls())
        return runs


def plain_text_of(runs: list[RichTextRun]) -> str:
    """Concatenate the plain text of every run, annotated or not."""
    return "".join(run.plain_text for run in runs)


# ========================================
# Input: block classification
# ========================================


class BlockKind(str, enum.Enum):
    """
    Closed set of block shapes the normalizer knows how to handle.

    Every Notion block type maps to exactly one kind; types we have never
    seen map to PASSTHROUGH so normalization cannot fail on new block types.
    """

    TEXT = "text"
    MEDIA = "media"
    TABLE = "table"
    TABLE_ROW = "table_row"
    CONTAINER = "container"
    LEAF = "leaf"
    PASSTHROUGH = "passthrough"


TEXT_BLOCK_TYPES = frozenset({
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "to_do",
    "toggle",
    "quote",
    "callout",
    "code",
})

MEDIA_BLOCK_TYPES = frozenset({"image", "video", "embed", "file", "pdf", "audio"})

# Image and video blocks take a slot in the per-page asset index
INDEXED_MEDIA_TYPES = frozenset({"image", "video"})

CONTAINER_BLOCK_TYPES = frozenset({
    "column_list",
    "column",
    "synced_block",
    "template",
})

LEAF_BLOCK_TYPES = frozenset({
    "divider",
    "table_of_contents",
    "breadcrumb",
})


def classify_block_type(block_type: Optional[str]) -> BlockKind:
    if block_type in TEXT_BLOCK_TYPES:
        return BlockKind.TEXT
    if block_type in MEDIA_BLOCK_TYPES:
        return BlockKind.MEDIA
    if block_type == "table":
        return BlockKind.TABLE
    if block_type == "table_row":
        return BlockKind.TABLE_ROW
    if block_type in CONTAINER_BLOCK_TYPES:
        return BlockKind.CONTAINER
    if block_type in LEAF_BLOCK_TYPES:
        return BlockKind.LEAF
    return BlockKind.PASSTHROUGH


# ========================================
# Output: normalized content
# ========================================


class Annotation(BaseModel):
    """
    Style record for the span [start, end) of a block's text.

    Carries at most one of ``color`` / ``background_color``: a run has a
    single color value, which is either a text color or ``<name>_background``.
    """

    text: str
    start: int
    end: int
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: Optional[str] = None
    background_color: Optional[str] = None
    href: Optional[str] = None


class TableCell(BaseModel):
    text: str = ""
    annotations: list[Annotation] = Field(default_factory=list)


class TableRow(BaseModel):
    cells: list[TableCell] = Field(default_factory=list)


class TableData(BaseModel):
    width: int = 0
    has_column_header: bool = False
    has_row_header: bool = False
    rows: list[TableRow] = Field(default_factory=list)


class ContentBlock(BaseModel):
    """
    One normalized block.

    Only the fields relevant to the block's type are set; ``to_dict`` drops
    the rest so stored trees stay compact and comparable.
    """

    id: Optional[str] = None
    type: str
    text: Optional[str] = None
    annotations: Optional[list[Annotation]] = None

    # List items, to-dos, callouts, code
    is_list_item: Optional[bool] = None
    list_type: Optional[str] = None
    checked: Optional[bool] = None
    icon: Optional[dict[str, Any]] = None
    language: Optional[str] = None

    # Media
    media_type: Optional[str] = None
    media_url: Optional[str] = None
    media_source: Optional[str] = None
    media_expiry_time: Optional[str] = None
    media_index: Optional[int] = None
    caption: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: Optional[float] = None
    is_heic: Optional[bool] = None

    # Tables
    table: Optional[TableData] = None

    children: Optional[list["ContentBlock"]] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)

    def iter_tree(self):
        """Yield this block and every descendant in document order."""
        yield self
        for child in self.children or []:
            yield from child.iter_tree()
