"""
Tests for media backup and per-page index scopes.
"""

import pytest

from vista.schemas.blocks import ContentBlock
from vista.services.processors.image_backup import (
    ImageAssetBackupManager,
    ImageIndexScope,
    asset_key,
    guess_extension,
)

from tests.notion_fakes import FakeAssetStorage, file_url


def _image(url: str, source: str = "file") -> ContentBlock:
    return ContentBlock(
        id="b",
        type="image",
        media_type="image",
        media_url=url,
        media_source=source,
        media_expiry_time="2024-05-01T11:00:00.000Z",
    )


def test_scope_counts_from_zero():
    scope = ImageIndexScope(tenant_id=1, page_id="p")

    assert [scope.next_index() for _ in range(4)] == [0, 1, 2, 3]
    assert scope.issued == 4


def test_scopes_are_independent():
    first = ImageIndexScope(tenant_id=1, page_id="a")
    second = ImageIndexScope(tenant_id=1, page_id="b")

    first.next_index()
    first.next_index()

    assert second.next_index() == 0
    assert first.next_index() == 2


@pytest.mark.parametrize(
    "url, content_type, expected",
    [
        ("https://x.test/a/photo.JPG?sig=1", None, "jpg"),
        ("https://x.test/a/download", "image/png", "png"),
        ("https://x.test/a/download", "image/heic", "heic"),
        ("https://x.test/a/download", None, "bin"),
    ],
)
def test_guess_extension(url, content_type, expected):
    assert guess_extension(url, content_type) == expected


def test_asset_key_format():
    assert asset_key(12, "0f3c", "image", 2, "png") == "12/0f3c/image-2.png"


async def test_backup_rewrites_url_and_clears_expiry(backup_manager, fake_storage):
    scope = backup_manager.new_scope(7, "page1")
    block = _image(file_url("photo.png"))

    await backup_manager.backup_block(block, scope)

    assert block.media_index == 0
    assert block.media_url == "https://cdn.test/7/page1/image-0.png"
    assert block.media_source == "stored"
    assert block.media_expiry_time is None
    assert "7/page1/image-0.png" in fake_storage.objects


async def test_failed_download_keeps_url_and_consumes_index(backup_manager, fake_storage):
    scope = backup_manager.new_scope(7, "page1")
    broken = _image(file_url("broken.png"))
    good = _image(file_url("fine.png"))

    await backup_manager.backup_block(broken, scope)
    await backup_manager.backup_block(good, scope)

    assert broken.media_index == 0
    assert broken.media_url == file_url("broken.png")
    assert broken.media_source == "file"
    assert good.media_index == 1
    assert good.media_url == "https://cdn.test/7/page1/image-1.png"
    assert list(fake_storage.objects) == ["7/page1/image-1.png"]


async def test_unparseable_url_keeps_url_and_consumes_index(backup_manager, fake_storage):
    scope = backup_manager.new_scope(7, "page1")
    broken = _image("https://[not-an-ip]/photo.png")
    good = _image(file_url("fine.png"))

    await backup_manager.backup_block(broken, scope)
    await backup_manager.backup_block(good, scope)

    assert broken.media_index == 0
    assert broken.media_url == "https://[not-an-ip]/photo.png"
    assert broken.media_source == "file"
    assert good.media_url == "https://cdn.test/7/page1/image-1.png"


async def test_failed_upload_keeps_url(asset_http):
    storage = FakeAssetStorage(fail_keys=("7/page1/image-0.png",))
    manager = ImageAssetBackupManager(storage, asset_http)
    block = _image(file_url("photo.png"))

    await manager.backup_block(block, manager.new_scope(7, "page1"))

    assert block.media_url == file_url("photo.png")
    assert block.media_index == 0


async def test_external_media_is_indexed_but_not_copied(backup_manager, fake_storage):
    scope = backup_manager.new_scope(7, "page1")
    block = _image("https://images.example.com/cat.png", source="external")

    await backup_manager.backup_block(block, scope)

    assert block.media_index == 0
    assert block.media_url == "https://images.example.com/cat.png"
    assert fake_storage.objects == {}


async def test_cover_does_not_consume_an_index(backup_manager, fake_storage):
    scope = backup_manager.new_scope(7, "page1")

    cover_url = await backup_manager.backup_cover({"type": "file", "file": {"url": file_url("cover.png")}}, scope)

    assert cover_url == "https://cdn.test/7/page1/cover-0.png"
    assert scope.issued == 0


async def test_external_and_missing_covers(backup_manager):
    scope = backup_manager.new_scope(7, "page1")

    assert await backup_manager.backup_cover(None, scope) is None
    assert await backup_manager.backup_cover(
        {"type": "external", "external": {"url": "https://images.example.com/c.jpg"}}, scope
    ) == "https://images.example.com/c.jpg"
