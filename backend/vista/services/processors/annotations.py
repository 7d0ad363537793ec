"""
Annotation extraction for Notion rich text.

A block's text is the concatenation of its runs. Each run that carries any
styling (a style flag, a non-default color, or a link) becomes one
Annotation spanning that run's characters within the concatenated text.

    runs:   "Hello " (plain) + "world" (bold)
    text:   "Hello world"
    result: [Annotation(start=6, end=11, text="world", bold=True)]

Offsets advance over every run, styled or not, so spans always line up with
the block text.
"""

from typing import Any

from vista.schemas.blocks import Annotation, RichTextRun

DEFAULT_COLOR = "default"
BACKGROUND_SUFFIX = "_background"


def split_color(color: str | None) -> tuple[str | None, str | None]:
    """
    Map a Notion color value to (color, background_color).

    Examples:
        "red"             -> ("red", None)
        "blue_background" -> (None, "blue")
        "default"         -> (None, None)
    """
    if not color or color == DEFAULT_COLOR:
        return None, None
    if color.endswith(BACKGROUND_SUFFIX):
        base = color[: -len(BACKGROUND_SUFFIX)]
        if not base or base == DEFAULT_COLOR:
            return None, None
        return None, base
    return color, None


def is_styled(run: RichTextRun) -> bool:
    style = run.annotations
    return bool(
        style.bold
        or style.italic
        or style.strikethrough
        or style.underline
        or style.code
        or split_color(style.color) != (None, None)
        or run.href
    )


def extract_annotations(runs: list[RichTextRun]) -> list[Annotation]:
    """
    Derive ordered annotations from a run list.

    Args:
        runs: Runs of one block or one table cell

    Returns:
        Annotations with offsets local to this run list
    """
    annotations: list[Annotation] = []
    offset = 0

    for run in runs:
        length = len(run.plain_text)

        if is_styled(run):
            color, background_color = split_color(run.annotations.color)
            annotations.append(
                Annotation(
                    text=run.plain_text,
                    start=offset,
                    end=offset + length,
                    bold=run.annotations.bold,
                    italic=run.annotations.italic,
                    strikethrough=run.annotations.strikethrough,
                    underline=run.annotations.underline,
                    code=run.annotations.code,
                    color=color,
                    background_color=background_color,
                    href=run.href,
                )
            )

        offset += length

    return annotations


def extract_text_and_annotations(raw_runs: Any) -> tuple[str, list[Annotation]]:
    """Parse a raw rich_text array and return (text, annotations)."""
    runs = RichTextRun.parse_many(raw_runs)
    return "".join(run.plain_text for run in runs), extract_annotations(runs)
