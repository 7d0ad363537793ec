"""
Tests for the block normalizer.
"""

from vista.services.processors.normalizer import BlockNormalizer

from tests.notion_fakes import block, file_url, image, paragraph, table, text_run, video


def _normalizer(backup_manager) -> BlockNormalizer:
    return BlockNormalizer(backup_manager)


async def test_paragraph_text_and_annotations(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = paragraph("p1", text_run("Hello "), text_run("world", bold=True))

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.id == "p1"
    assert result.type == "paragraph"
    assert result.text == "Hello world"
    assert [(a.start, a.end, a.bold) for a in result.annotations] == [(6, 11, True)]
    assert result.children is None


async def test_list_items_todo_and_code(backup_manager):
    normalizer = _normalizer(backup_manager)
    scope = backup_manager.new_scope(1, "page")
    raw_blocks = [
        block("b1", "bulleted_list_item", {"rich_text": [text_run("one")]}),
        block("b2", "numbered_list_item", {"rich_text": [text_run("two")]}),
        block("b3", "to_do", {"rich_text": [text_run("done")], "checked": True}),
        block("b4", "code", {"rich_text": [text_run("print(1)")], "language": "python"}),
    ]

    bulleted, numbered, todo, code = await normalizer.normalize_blocks(raw_blocks, scope)

    assert bulleted.is_list_item is True and bulleted.list_type == "bulleted_list"
    assert numbered.list_type == "numbered_list"
    assert todo.checked is True
    assert code.language == "python"
    assert code.text == "print(1)"


async def test_children_stay_nested(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = block(
        "toggle1",
        "toggle",
        {"rich_text": [text_run("More")]},
        children=[paragraph("child1", text_run("inside"), children=[paragraph("grandchild", text_run("deep"))])],
    )

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.text == "More"
    assert [child.id for child in result.children] == ["child1"]
    assert result.children[0].children[0].text == "deep"


async def test_unknown_block_type_passes_through(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = block("x1", "brand_new_block", {"rich_text": [text_run("still text")], "whatever": 1})

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.type == "brand_new_block"
    assert result.id == "x1"
    assert result.text == "still text"


async def test_unknown_block_without_payload(backup_manager):
    normalizer = _normalizer(backup_manager)

    [result] = await normalizer.normalize_blocks(
        [{"id": "x2", "type": "mystery", "mystery": "not an object"}],
        backup_manager.new_scope(1, "page"),
    )

    assert result.to_dict() == {"id": "x2", "type": "mystery"}


async def test_malformed_known_block_degrades(backup_manager):
    normalizer = _normalizer(backup_manager)
    # table_row cells should be a list of rich_text arrays
    raw = {"id": "r1", "type": "table_row", "table_row": {"cells": 5}}

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.id == "r1"
    assert result.type == "table_row"


async def test_non_object_blocks_are_skipped(backup_manager):
    normalizer = _normalizer(backup_manager)

    result = await normalizer.normalize_blocks(
        [None, "junk", paragraph("p1", text_run("ok"))],
        backup_manager.new_scope(1, "page"),
    )

    assert [b.id for b in result] == ["p1"]


async def test_media_indices_follow_document_order(backup_manager, fake_storage):
    normalizer = _normalizer(backup_manager)
    raw_blocks = [
        image("i1", file_url("a.png")),
        paragraph("p1", text_run("between"), children=[image("i2", file_url("b.png"))]),
        block("cols", "column_list", {}, children=[
            block("col1", "column", {}, children=[video("v1", file_url("clip.mp4"))]),
            block("col2", "column", {}, children=[image("i3", "https://images.example.com/x.png", source="external")]),
        ]),
        image("i4", file_url("d.png")),
    ]

    result = await normalizer.normalize_blocks(raw_blocks, backup_manager.new_scope(3, "pg"))

    media = [node for top in result for node in top.iter_tree() if node.media_type in ("image", "video")]
    assert [(node.id, node.media_index) for node in media] == [("i1", 0), ("i2", 1), ("v1", 2), ("i3", 3), ("i4", 4)]
    assert set(fake_storage.objects) == {
        "3/pg/image-0.png",
        "3/pg/image-1.png",
        "3/pg/video-2.mp4",
        "3/pg/image-4.png",
    }


async def test_reprocessing_reproduces_indices(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw_blocks = [image("i1", file_url("broken.png")), image("i2", file_url("b.png"))]

    first = await normalizer.normalize_blocks(raw_blocks, backup_manager.new_scope(3, "pg"))
    second = await normalizer.normalize_blocks(raw_blocks, backup_manager.new_scope(3, "pg"))

    assert [b.to_dict() for b in first] == [b.to_dict() for b in second]
    assert [b.media_index for b in second] == [0, 1]


async def test_image_dimensions_and_caption(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = image("i1", "https://images.example.com/x.heic", source="external", caption="A photo")
    raw["image"].update({"width": 400, "height": 200})

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.caption == "A photo"
    assert result.aspect_ratio == 2.0
    assert result.is_heic is True


async def test_embed_is_not_indexed(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = block("e1", "embed", {"url": "https://maps.example.com/x", "caption": []})

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.media_url == "https://maps.example.com/x"
    assert result.media_index is None


async def test_table_rows_fold_into_table(backup_manager):
    normalizer = _normalizer(backup_manager)
    raw = table("t1", [[[text_run("H", bold=True)]], [[text_run("v")]]])

    [result] = await normalizer.normalize_blocks([raw], backup_manager.new_scope(1, "page"))

    assert result.children is None
    assert [row.cells[0].text for row in result.table.rows] == ["H", "v"]
    assert result.table.rows[0].cells[0].annotations[0].bold is True
