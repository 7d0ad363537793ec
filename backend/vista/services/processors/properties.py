"""
Page property extraction.

Maps a Notion page's ``properties`` object onto ContentItem columns.
Property names are matched case-insensitively:

    Name / Title     → title (falls back to whichever property has type "title")
    Description      → description
    Category         → category (select)
    Tags             → tags (multi_select)
    Start date       → start_date
    End date         → end_date (falls back to the end of a ranged "Date")
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from vista.schemas.blocks import RichTextRun, plain_text_of

DEFAULT_TITLE = "Untitled"


def canonical_id(notion_id: Optional[str]) -> Optional[str]:
    """
    Canonical form of a Notion id: lowercase, hyphens removed.

    Notion formats the same id as ``0f3c...`` or ``0f3c-...`` depending on
    where it appears.
    """
    if not notion_id:
        return None
    return notion_id.replace("-", "").strip().lower() or None


def parse_notion_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse Notion's ISO timestamps (``2024-05-01T10:00:00.000Z``)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class PageProperties:
    title: str = DEFAULT_TITLE
    description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None


def _rich_text(prop: dict[str, Any], key: str) -> str:
    return plain_text_of(RichTextRun.parse_many(prop.get(key)))


def _date(prop: Optional[dict[str, Any]], part: str = "start") -> Optional[str]:
    if not prop:
        return None
    value = prop.get("date") or {}
    return value.get(part)


def extract_page_properties(page: dict[str, Any]) -> PageProperties:
    properties = page.get("properties") or {}
    by_name = {
        name.strip().lower(): prop
        for name, prop in properties.items()
        if isinstance(prop, dict)
    }

    result = PageProperties()

    title_prop = by_name.get("name") or by_name.get("title")
    if title_prop is None or title_prop.get("type") not in (None, "title"):
        title_prop = next((p for p in by_name.values() if p.get("type") == "title"), title_prop)
    if title_prop:
        title = _rich_text(title_prop, "title").strip()
        result.title = title or DEFAULT_TITLE

    description = by_name.get("description")
    if description:
        result.description = _rich_text(description, "rich_text") or None

    category = by_name.get("category")
    if category and category.get("select"):
        result.category = category["select"].get("name")

    tags = by_name.get("tags")
    if tags:
        result.tags = [
            option["name"]
            for option in tags.get("multi_select") or []
            if isinstance(option, dict) and option.get("name")
        ]

    result.start_date = _date(by_name.get("start date")) or _date(by_name.get("date"))
    result.end_date = _date(by_name.get("end date")) or _date(by_name.get("date"), "end")

    return result


def parent_database_id(page: dict[str, Any]) -> Optional[str]:
    """Canonical id of the database a page lives in, if its parent is a database."""
    parent = page.get("parent") or {}
    return canonical_id(parent.get("database_id") or parent.get("data_source_id"))
