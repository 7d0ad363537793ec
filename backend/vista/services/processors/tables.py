"""
Table processing.

Notion delivers a table as a ``table`` block whose children are
``table_row`` blocks; each row has ``cells``, each cell a rich_text array.
The processed form is a single grid stored on the table block:

    {
        "width": 3,
        "has_column_header": true,
        "has_row_header": false,
        "rows": [{"cells": [{"text": "...", "annotations": [...]}, ...]}, ...]
    }

Annotation offsets are local to each cell.
"""

import logging
from typing import Any

from vista.schemas.blocks import TableCell, TableData, TableRow
from vista.services.processors.annotations import extract_text_and_annotations

logger = logging.getLogger(__name__)


def process_cell(raw_cell: Any) -> TableCell:
    text, annotations = extract_text_and_annotations(raw_cell)
    return TableCell(text=text, annotations=annotations)


def process_row(row_block: dict[str, Any]) -> TableRow:
    cells = (row_block.get("table_row") or {}).get("cells") or []
    return TableRow(cells=[process_cell(cell) for cell in cells])


def process_table(table_block: dict[str, Any], row_blocks: list[dict[str, Any]]) -> TableData:
    """
    Build the grid for a table block.

    Args:
        table_block: The raw ``table`` block
        row_blocks: Its children, in order; non-row children are skipped

    Returns:
        TableData with one TableRow per table_row child
    """
    spec = table_block.get("table") or {}
    rows = []
    for row_block in row_blocks:
        if row_block.get("type") != "table_row":
            logger.warning(
                f"Skipping unexpected {row_block.get('type')!r} child in table {table_block.get('id')}"
            )
            continue
        rows.append(process_row(row_block))

    return TableData(
        width=spec.get("table_width") or max((len(r.cells) for r in rows), default=0),
        has_column_header=bool(spec.get("has_column_header")),
        has_row_header=bool(spec.get("has_row_header")),
        rows=rows,
    )
