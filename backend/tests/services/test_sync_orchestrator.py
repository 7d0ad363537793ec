"""
Tests for full database resyncs.
"""

import pytest
from sqlalchemy import select

from vista.core.exceptions import RequestValidationFailed, SourceApiError
from vista.db.base import as_utc
from vista.models.content import ContentItem, ContentStatus
from vista.models.profile import Profile
from vista.services.sync_orchestrator import SyncOrchestrator

from tests.notion_fakes import canon, file_url, image, make_page, page_uuid, paragraph, text_run


def _seed(fake_notion, count=3):
    for n in range(1, count + 1):
        fake_notion.add_page(
            make_page(page_uuid(n), f"Page {n}", created_time=f"2024-04-0{n}T09:00:00.000Z"),
            [paragraph(f"p{n}", text_run(f"Body {n}")), image(f"i{n}", file_url(f"pic{n}.png"))],
        )


async def _items(db_session) -> dict[str, ContentItem]:
    result = await db_session.execute(select(ContentItem).execution_options(populate_existing=True))
    return {item.notion_page_id: item for item in result.scalars()}


def _orchestrator(db_session, pipeline, notion_factory, concurrency=2):
    return SyncOrchestrator(db_session, pipeline, notion_factory=notion_factory, concurrency=concurrency)


async def test_first_sync_inserts_every_page(db_session, pipeline, fake_notion, notion_factory, profile, fake_storage):
    _seed(fake_notion)

    report = await _orchestrator(db_session, pipeline, notion_factory).sync_profile(profile)

    assert report.summary() == {
        "profile_id": profile.id,
        "total_pages": 3,
        "inserted": 3,
        "updated": 0,
        "unchanged": 0,
        "failed": 0,
        "removed": 0,
    }
    items = await _items(db_session)
    assert set(items) == {canon(page_uuid(n)) for n in (1, 2, 3)}
    assert all(item.status == ContentStatus.ACTIVE for item in items.values())
    # Each page has its own index scope, so every page starts at image-0
    assert {key.rsplit("/", 1)[1] for key in fake_storage.objects} == {"image-0.png"}
    assert len(fake_storage.objects) == 3


async def test_resync_without_changes_is_a_no_op(db_session, pipeline, fake_notion, notion_factory, profile):
    _seed(fake_notion)
    orchestrator = _orchestrator(db_session, pipeline, notion_factory)
    await orchestrator.sync_profile(profile)
    before = {page_id: (item.content, as_utc(item.updated_at)) for page_id, item in (await _items(db_session)).items()}

    report = await orchestrator.sync_profile(profile)

    assert report.count("unchanged") == 3
    after = {page_id: (item.content, as_utc(item.updated_at)) for page_id, item in (await _items(db_session)).items()}
    assert after == before


async def test_pages_missing_from_database_are_removed(db_session, pipeline, fake_notion, notion_factory, profile):
    _seed(fake_notion)
    orchestrator = _orchestrator(db_session, pipeline, notion_factory)
    await orchestrator.sync_profile(profile)

    fake_notion.remove_page(page_uuid(2))
    fake_notion.pages[canon(page_uuid(3))]["archived"] = True
    report = await orchestrator.sync_profile(profile)

    assert sorted(report.removed_page_ids) == sorted([canon(page_uuid(2)), canon(page_uuid(3))])
    items = await _items(db_session)
    assert items[canon(page_uuid(1))].status == ContentStatus.ACTIVE
    assert items[canon(page_uuid(2))].status == ContentStatus.REMOVED
    # Removal keeps the stored content
    assert items[canon(page_uuid(2))].title == "Page 2"


async def test_failed_page_does_not_stop_the_run(db_session, pipeline, fake_notion, notion_factory, profile):
    _seed(fake_notion)
    orchestrator = _orchestrator(db_session, pipeline, notion_factory)
    await orchestrator.sync_profile(profile)

    fake_notion.failing_blocks.add(canon(page_uuid(2)))
    fake_notion.pages[canon(page_uuid(1))]["properties"]["Name"]["title"] = [text_run("Renamed")]
    report = await orchestrator.sync_profile(profile)

    results = {page.page_id: page for page in report.pages}
    assert results[canon(page_uuid(2))].operation == "failed"
    assert results[canon(page_uuid(2))].error
    assert results[canon(page_uuid(1))].operation == "updated"
    assert report.removed_page_ids == []
    items = await _items(db_session)
    # The failed page keeps its previous snapshot and stays active
    assert items[canon(page_uuid(2))].status == ContentStatus.ACTIVE
    assert items[canon(page_uuid(1))].title == "Renamed"


async def test_enumeration_failure_writes_nothing(db_session, pipeline, fake_notion, notion_factory, profile):
    _seed(fake_notion)
    orchestrator = _orchestrator(db_session, pipeline, notion_factory)
    await orchestrator.sync_profile(profile)
    fake_notion.failing_database = True

    with pytest.raises(SourceApiError):
        await orchestrator.sync_profile(profile)

    items = await _items(db_session)
    assert len(items) == 3
    assert all(item.status == ContentStatus.ACTIVE for item in items.values())


async def test_unconfigured_profile_is_rejected(db_session, pipeline, notion_factory):
    profile = Profile(url_param="empty")
    db_session.add(profile)
    await db_session.commit()

    with pytest.raises(RequestValidationFailed):
        await _orchestrator(db_session, pipeline, notion_factory).sync_profile(profile)


async def test_pagination_is_followed(db_session, pipeline, fake_notion, profile):
    from tests.notion_fakes import make_notion_factory

    _seed(fake_notion, count=5)

    report = await _orchestrator(db_session, pipeline, make_notion_factory(fake_notion, page_size=2)).sync_profile(profile)

    assert report.count("inserted") == 5
