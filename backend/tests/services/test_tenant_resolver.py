"""
Tests for tenant resolution.
"""

import pytest

from vista.core.exceptions import TenantNotFoundError
from vista.models.content import ContentItem
from vista.services.tenant_resolver import TenantResolver

from tests.notion_fakes import DATABASE_ID, canon, page_uuid


async def test_explicit_numeric_id(db_session, profile):
    resolved = await TenantResolver(db_session).resolve_explicit(str(profile.id))

    assert resolved.id == profile.id


async def test_explicit_slug(db_session, profile):
    resolved = await TenantResolver(db_session).resolve_explicit("spring-retreat")

    assert resolved.id == profile.id


async def test_explicit_unknown_raises(db_session, profile):
    with pytest.raises(TenantNotFoundError):
        await TenantResolver(db_session).resolve_explicit("nobody")


async def test_database_id_ignores_hyphens_and_case(db_session, profile, other_profile):
    resolver = TenantResolver(db_session)

    assert (await resolver.resolve_by_database_id(canon(DATABASE_ID))).id == profile.id
    assert (await resolver.resolve_by_database_id(DATABASE_ID.upper())).id == profile.id


async def test_unknown_database_raises(db_session, profile):
    with pytest.raises(TenantNotFoundError) as exc_info:
        await TenantResolver(db_session).resolve_by_database_id("12345678-0000-0000-0000-000000000000")

    assert exc_info.value.database_id == "12345678-0000-0000-0000-000000000000"


async def test_explicit_reference_is_authoritative(db_session, profile, other_profile):
    resolver = TenantResolver(db_session)

    resolved = await resolver.resolve(tenant_ref="other", database_id=DATABASE_ID)
    assert resolved.id == other_profile.id

    with pytest.raises(TenantNotFoundError):
        await resolver.resolve(tenant_ref="nobody", database_id=DATABASE_ID)


async def test_falls_back_to_page_owner(db_session, profile, other_profile):
    db_session.add(ContentItem(profile_id=other_profile.id, notion_page_id=canon(page_uuid(5)), title="Held"))
    await db_session.commit()

    resolved = await TenantResolver(db_session).resolve(
        database_id="12345678-0000-0000-0000-000000000000",
        page_id=page_uuid(5),
    )

    assert resolved.id == other_profile.id


async def test_page_held_by_two_profiles_is_ambiguous(db_session, profile, other_profile):
    for owner in (profile, other_profile):
        db_session.add(ContentItem(profile_id=owner.id, notion_page_id=canon(page_uuid(5)), title="Shared"))
    await db_session.commit()

    with pytest.raises(TenantNotFoundError):
        await TenantResolver(db_session).resolve(page_id=page_uuid(5))


async def test_nothing_to_resolve_by(db_session):
    with pytest.raises(TenantNotFoundError):
        await TenantResolver(db_session).resolve()
