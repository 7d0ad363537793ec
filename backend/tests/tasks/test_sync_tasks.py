"""
Tests for the full-sync Celery task.
"""

from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from celery.exceptions import Retry
from sqlalchemy import select

from vista.db.redis import SyncAlreadyRunningError, profile_sync_lock, sync_lock_key
from vista.models.content import ContentItem
from vista.tasks.sync_tasks import sync_profile, sync_profile_database

from tests.notion_fakes import make_page, page_uuid, paragraph, text_run


async def test_sync_profile_runs_full_sync(session_factory, fake_notion, notion_factory, fake_storage, profile):
    for n in (1, 2):
        fake_notion.add_page(make_page(page_uuid(n), f"Page {n}"), [paragraph(f"p{n}", text_run("body"))])

    result = await sync_profile(profile.id, session_factory, storage=fake_storage, notion_factory=notion_factory)

    assert result["success"] is True
    assert result["inserted"] == 2
    async with session_factory() as session:
        titles = (await session.execute(select(ContentItem.title).order_by(ContentItem.title))).scalars().all()
    assert titles == ["Page 1", "Page 2"]


async def test_sync_profile_unknown_profile(session_factory, fake_storage, notion_factory):
    result = await sync_profile(999, session_factory, storage=fake_storage, notion_factory=notion_factory)

    assert result == {"success": False, "profile_id": 999, "error": "Profile not found"}


def test_task_holds_profile_lock():
    held = []

    @contextmanager
    def fake_lock(profile_id):
        held.append(profile_id)
        yield

    with patch("vista.tasks.sync_tasks.profile_sync_lock", fake_lock), \
         patch("vista.tasks.sync_tasks.sync_profile", new=AsyncMock(return_value={"success": True})):
        result = sync_profile_database(5)

    assert result == {"success": True}
    assert held == [5]


def test_task_retries_when_lock_is_taken():
    @contextmanager
    def busy_lock(profile_id):
        raise SyncAlreadyRunningError(f"A sync is already running for profile {profile_id}")
        yield

    with patch("vista.tasks.sync_tasks.profile_sync_lock", busy_lock), \
         patch.object(sync_profile_database, "retry", side_effect=Retry()) as mock_retry:
        with pytest.raises(Retry):
            sync_profile_database(5)

    assert mock_retry.call_args.kwargs["countdown"] == 30


def test_profile_sync_lock_acquires_and_releases():
    lock = MagicMock()
    lock.acquire.return_value = True
    client = MagicMock()
    client.lock.return_value = lock

    with profile_sync_lock(3, client=client):
        pass

    assert client.lock.call_args.args[0] == sync_lock_key(3)
    lock.release.assert_called_once()


def test_profile_sync_lock_busy():
    lock = MagicMock()
    lock.acquire.return_value = False
    client = MagicMock()
    client.lock.return_value = lock

    with pytest.raises(SyncAlreadyRunningError):
        with profile_sync_lock(3, client=client):
            pass

    lock.release.assert_not_called()
