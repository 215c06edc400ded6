import sqlite3

import pytest
import sqlalchemy

from formforge.database import database, form_table, utcnow
from formforge.errors import NotFoundError, StateConflictError, UnauthorizedError
from formforge.models.form import FormIn, FormStatus, FormUpdateIn
from formforge.services import forms as form_service

pytestmark = pytest.mark.anyio


async def published_count(group_id: str) -> int:
    query = sqlalchemy.select(sqlalchemy.func.count()).select_from(form_table).where(
        form_table.c.group_id == group_id,
        form_table.c.status == FormStatus.PUBLISHED.value,
    )
    return await database.fetch_val(query)


async def test_create_form_starts_as_draft(owner_id):
    form = await form_service.create_form(owner_id, FormIn(title="Event Signup", description="RSVP"))

    assert form.status == FormStatus.DRAFT
    assert form.version == 1
    assert form.slug.startswith("event-signup-")
    assert form.owner_id == owner_id
    assert form.published_at is None


async def test_get_form_includes_fields(draft_form, owner_id):
    detail = await form_service.get_form(draft_form.id, owner_id)
    assert [f.field_key for f in detail.fields] == ["name", "email", "age", "subscribe"]


async def test_get_form_of_other_owner(draft_form, other_owner_id):
    with pytest.raises(UnauthorizedError):
        await form_service.get_form(draft_form.id, other_owner_id)


async def test_get_missing_form(owner_id):
    with pytest.raises(NotFoundError):
        await form_service.get_form(999999, owner_id)


async def test_publish_draft(draft_form, owner_id):
    form = await form_service.publish_form(draft_form.id, owner_id)

    assert form.status == FormStatus.PUBLISHED
    assert form.published_at is not None
    assert await published_count(form.group_id) == 1


async def test_publish_twice_is_noop(live_form, owner_id):
    again = await form_service.publish_form(live_form.id, owner_id)
    assert again.status == FormStatus.PUBLISHED
    assert again.published_at == live_form.published_at


async def test_publish_archived_form_conflicts(live_form, owner_id):
    await form_service.archive_form(live_form.id, owner_id)
    with pytest.raises(StateConflictError):
        await form_service.publish_form(live_form.id, owner_id)


async def test_create_draft_clones_fields(live_form, owner_id):
    draft = await form_service.create_draft(live_form.id, owner_id)

    assert draft.id != live_form.id
    assert draft.status == FormStatus.DRAFT
    assert draft.version == 2
    assert draft.group_id == live_form.group_id
    assert draft.slug == live_form.slug

    detail = await form_service.get_form(draft.id, owner_id)
    assert [f.field_key for f in detail.fields] == ["name", "email", "age", "subscribe"]
    assert all(f.form_id == draft.id for f in detail.fields)


async def test_create_draft_from_draft_returns_it(draft_form, owner_id):
    same = await form_service.create_draft(draft_form.id, owner_id)
    assert same.id == draft_form.id


async def test_publish_new_version_archives_previous(live_form, owner_id):
    draft = await form_service.create_draft(live_form.id, owner_id)
    published = await form_service.publish_form(draft.id, owner_id)

    versions = await form_service.list_versions(published.id, owner_id)
    statuses = {v.version: v.status for v in versions}

    assert statuses == {1: FormStatus.ARCHIVED, 2: FormStatus.PUBLISHED}
    assert await published_count(live_form.group_id) == 1

    live = await form_service.get_live_form(live_form.slug)
    assert live.id == published.id


async def test_publish_leaves_other_groups_alone(live_form, owner_id):
    other = await form_service.create_form(owner_id, FormIn(title="Another"))
    await form_service.publish_form(other.id, owner_id)

    still_live = await form_service.get_live_form(live_form.slug)
    assert still_live.id == live_form.id


async def test_update_published_form_conflicts(live_form, owner_id):
    with pytest.raises(StateConflictError) as exc_info:
        await form_service.update_form(live_form.id, owner_id, FormUpdateIn(title="Changed"))
    assert "Create a draft first" in exc_info.value.message


async def test_update_draft_partially(draft_form, owner_id):
    updated = await form_service.update_form(
        draft_form.id, owner_id, FormUpdateIn(description="New description")
    )
    assert updated.title == draft_form.title
    assert updated.description == "New description"


async def test_deleted_form_is_hidden(draft_form, owner_id):
    await form_service.delete_form(draft_form.id, owner_id)
    with pytest.raises(NotFoundError):
        await form_service.get_form(draft_form.id, owner_id)


async def test_list_forms_with_counts(draft_form, owner_id):
    await form_service.create_form(owner_id, FormIn(title="Second"))

    page = await form_service.list_forms(owner_id, per_page=1)
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert len(page["forms"]) == 1

    drafts = await form_service.list_forms(owner_id, status=FormStatus.DRAFT)
    by_id = {f.id: f for f in drafts["forms"]}
    assert by_id[draft_form.id].field_count == 4
    assert by_id[draft_form.id].response_count == 0


async def test_public_form_hides_internal_fields(live_form):
    public = await form_service.get_public_form(live_form.slug)

    assert public.slug == live_form.slug
    assert [f.field_key for f in public.fields] == ["name", "email", "age", "subscribe"]
    assert public.fields[0].field_type == "TEXT"
    assert public.load_timestamp > 0


async def test_draft_is_not_live(draft_form):
    with pytest.raises(NotFoundError):
        await form_service.get_live_form(draft_form.slug)


async def versions_by_number(form_id, owner_id):
    return {v.version: v.status for v in await form_service.list_versions(form_id, owner_id)}


async def test_publish_archives_only_the_live_sibling(live_form, owner_id):
    second = await form_service.create_draft(live_form.id, owner_id)
    await form_service.publish_form(second.id, owner_id)
    third = await form_service.create_draft(second.id, owner_id)
    fourth = await form_service.create_draft(second.id, owner_id)

    assert await versions_by_number(live_form.id, owner_id) == {
        1: FormStatus.ARCHIVED,
        2: FormStatus.PUBLISHED,
        3: FormStatus.DRAFT,
        4: FormStatus.DRAFT,
    }

    await form_service.publish_form(third.id, owner_id)

    assert await versions_by_number(live_form.id, owner_id) == {
        1: FormStatus.ARCHIVED,
        2: FormStatus.ARCHIVED,
        3: FormStatus.PUBLISHED,
        4: FormStatus.DRAFT,
    }
    assert fourth.version == 4


async def test_sibling_drafts_published_back_to_back(live_form, owner_id):
    first_draft = await form_service.create_draft(live_form.id, owner_id)
    second_draft = await form_service.create_draft(live_form.id, owner_id)

    await form_service.publish_form(first_draft.id, owner_id)
    await form_service.publish_form(second_draft.id, owner_id)

    assert await published_count(live_form.group_id) == 1
    assert (await form_service.get_live_form(live_form.slug)).id == second_draft.id
    assert await versions_by_number(live_form.id, owner_id) == {
        1: FormStatus.ARCHIVED,
        2: FormStatus.ARCHIVED,
        3: FormStatus.PUBLISHED,
    }


async def test_store_rejects_second_published_row(live_form):
    now = utcnow()
    with pytest.raises(sqlite3.IntegrityError):
        async with database.transaction():
            await database.execute(
                form_table.insert().values(
                    group_id=live_form.group_id,
                    slug=f"{live_form.slug}-copy",
                    owner_id=live_form.owner_id,
                    title=live_form.title,
                    status=FormStatus.PUBLISHED.value,
                    version=live_form.version + 1,
                    is_deleted=False,
                    created_at=now,
                    updated_at=now,
                )
            )

    assert await published_count(live_form.group_id) == 1
