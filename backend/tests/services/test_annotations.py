"""
Tests for annotation extraction from Notion rich text.
"""

import pytest

from vista.schemas.blocks import RichTextRun
from vista.services.processors.annotations import (
    extract_annotations,
    extract_text_and_annotations,
    split_color,
)

from tests.notion_fakes import text_run


@pytest.mark.parametrize(
    "color, expected",
    [
        ("red", ("red", None)),
        ("blue_background", (None, "blue")),
        ("default", (None, None)),
        (None, (None, None)),
        ("default_background", (None, None)),
    ],
)
def test_split_color(color, expected):
    assert split_color(color) == expected


def test_single_styled_run_with_background_color():
    text = "Bold red text with blue background"
    text_out, annotations = extract_text_and_annotations(
        [text_run(text, bold=True, color="blue_background")]
    )

    assert text_out == text
    assert len(annotations) == 1
    annotation = annotations[0].model_dump(exclude_none=True)
    assert annotation["start"] == 0
    assert annotation["end"] == len(text)
    assert annotation["bold"] is True
    assert annotation["background_color"] == "blue"
    assert "color" not in annotation


def test_text_color_has_no_background():
    _, annotations = extract_text_and_annotations([text_run("warning", color="red")])

    assert annotations[0].color == "red"
    assert annotations[0].background_color is None


def test_offsets_count_unstyled_runs():
    text, annotations = extract_text_and_annotations([
        text_run("Hello "),
        text_run("world", bold=True),
        text_run(" and "),
        text_run("more", italic=True, underline=True),
    ])

    assert text == "Hello world and more"
    assert [(a.start, a.end, a.text) for a in annotations] == [(6, 11, "world"), (16, 20, "more")]
    for annotation in annotations:
        assert text[annotation.start:annotation.end] == annotation.text


def test_plain_runs_produce_no_annotations():
    text, annotations = extract_text_and_annotations([text_run("just "), text_run("text")])

    assert text == "just text"
    assert annotations == []


def test_default_background_alone_is_not_styling():
    text, annotations = extract_text_and_annotations([
        text_run("plain ", color="default_background"),
        text_run("tinted", color="yellow_background"),
    ])

    assert text == "plain tinted"
    assert len(annotations) == 1
    assert (annotations[0].start, annotations[0].end) == (6, 12)
    assert annotations[0].background_color == "yellow"


def test_link_counts_as_styling():
    _, annotations = extract_text_and_annotations([text_run("docs", href="https://example.com")])

    assert len(annotations) == 1
    assert annotations[0].href == "https://example.com"
    assert annotations[0].bold is False


def test_malformed_runs_are_tolerated():
    runs = RichTextRun.parse_many([
        {"plain_text": "ok", "annotations": None},
        "not a run",
        {"plain_text": None, "annotations": {"bold": True}},
    ])

    assert [run.plain_text for run in runs] == ["ok", "", ""]
    # Zero-length styled run still yields a (zero-width) annotation
    annotations = extract_annotations(runs)
    assert [(a.start, a.end) for a in annotations] == [(2, 2)]


def test_non_list_rich_text_is_empty():
    assert extract_text_and_annotations(None) == ("", [])
