"""
Form version store.

A form is a group of versions sharing ``group_id`` and ``slug``. Versions move
through DRAFT -> PUBLISHED -> ARCHIVED; only a DRAFT is editable and at most
one version per group is PUBLISHED at any time. Publishing archives the live
sibling and promotes the draft inside one transaction.
"""
import logging
import uuid
from typing import List, Optional

import sqlalchemy

from formforge.database import (
    database,
    form_table,
    formfield_table,
    formresponse_table,
    utcnow,
)
from formforge.errors import NotFoundError, StateConflictError, UnauthorizedError
from formforge.guards import now_ms
from formforge.models.field import Field
from formforge.models.form import (
    Form,
    FormDetail,
    FormIn,
    FormStatus,
    FormSummary,
    FormUpdateIn,
    PublicField,
    PublicForm,
)
from formforge.slug import generate_slug

logger = logging.getLogger(__name__)


def form_from_row(row) -> Form:
    return Form(**dict(row._mapping))


def field_from_row(row) -> Field:
    return Field(**dict(row._mapping))


async def fetch_active_fields(form_id: int) -> List[Field]:
    query = (
        formfield_table.select()
        .where(
            formfield_table.c.form_id == form_id,
            formfield_table.c.is_deleted == sqlalchemy.false(),
        )
        .order_by(formfield_table.c.display_order, formfield_table.c.id)
    )
    rows = await database.fetch_all(query)
    return [field_from_row(row) for row in rows]


async def get_form_and_verify_ownership(form_id: int, owner_id: int) -> Form:
    query = form_table.select().where(
        form_table.c.id == form_id,
        form_table.c.is_deleted == sqlalchemy.false(),
    )
    row = await database.fetch_one(query)
    if not row:
        raise NotFoundError("Form", form_id)

    form = form_from_row(row)
    if form.owner_id != owner_id:
        raise UnauthorizedError("You don't have access to this form")
    return form


async def _reload(form_id: int) -> Form:
    row = await database.fetch_one(form_table.select().where(form_table.c.id == form_id))
    return form_from_row(row)


async def create_form(owner_id: int, form_in: FormIn) -> Form:
    now = utcnow()
    query = form_table.insert().values(
        group_id=uuid.uuid4().hex,
        slug=generate_slug(form_in.title),
        owner_id=owner_id,
        title=form_in.title,
        description=form_in.description,
        settings=form_in.settings,
        status=FormStatus.DRAFT.value,
        version=1,
        is_deleted=False,
        created_at=now,
        updated_at=now,
    )
    form_id = await database.execute(query)
    form = await _reload(form_id)
    logger.info(f"Form created: {form.slug} (group {form.group_id}) by user {owner_id}")
    return form


async def get_form(form_id: int, owner_id: int) -> FormDetail:
    form = await get_form_and_verify_ownership(form_id, owner_id)
    fields = await fetch_active_fields(form.id)
    return FormDetail(**form.model_dump(), fields=fields)


async def list_forms(
    owner_id: int,
    status: Optional[FormStatus] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    offset = (page - 1) * per_page

    conditions = [
        form_table.c.owner_id == owner_id,
        form_table.c.is_deleted == sqlalchemy.false(),
    ]
    if status is not None:
        conditions.append(form_table.c.status == FormStatus(status).value)

    field_count = (
        sqlalchemy.select(sqlalchemy.func.count(formfield_table.c.id))
        .where(
            formfield_table.c.form_id == form_table.c.id,
            formfield_table.c.is_deleted == sqlalchemy.false(),
        )
        .scalar_subquery()
        .label("field_count")
    )
    response_count = (
        sqlalchemy.select(sqlalchemy.func.count(formresponse_table.c.id))
        .where(formresponse_table.c.form_id == form_table.c.id)
        .scalar_subquery()
        .label("response_count")
    )

    count_query = sqlalchemy.select(sqlalchemy.func.count()).select_from(form_table).where(*conditions)
    total_count = await database.fetch_val(count_query)

    query = (
        sqlalchemy.select(form_table, field_count, response_count)
        .where(*conditions)
        .order_by(form_table.c.created_at.desc(), form_table.c.id.desc())
        .limit(per_page)
        .offset(offset)
    )
    rows = await database.fetch_all(query)

    return {
        "forms": [FormSummary(**dict(row._mapping)) for row in rows],
        "page": page,
        "per_page": per_page,
        "total": total_count,
        "total_pages": (total_count + per_page - 1) // per_page,
    }


async def list_versions(form_id: int, owner_id: int) -> List[Form]:
    form = await get_form_and_verify_ownership(form_id, owner_id)
    query = (
        form_table.select()
        .where(
            form_table.c.group_id == form.group_id,
            form_table.c.is_deleted == sqlalchemy.false(),
        )
        .order_by(form_table.c.version)
    )
    rows = await database.fetch_all(query)
    return [form_from_row(row) for row in rows]


async def create_draft(source_form_id: int, owner_id: int) -> Form:
    source = await get_form_and_verify_ownership(source_form_id, owner_id)

    if source.status == FormStatus.DRAFT:
        return source

    async with database.transaction():
        max_version = await database.fetch_val(
            sqlalchemy.select(sqlalchemy.func.max(form_table.c.version)).where(
                form_table.c.group_id == source.group_id
            )
        )
        now = utcnow()
        draft_id = await database.execute(
            form_table.insert().values(
                group_id=source.group_id,
                slug=source.slug,
                owner_id=source.owner_id,
                title=source.title,
                description=source.description,
                settings=source.settings,
                status=FormStatus.DRAFT.value,
                version=(max_version or source.version) + 1,
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
        )

        for field in await fetch_active_fields(source.id):
            await database.execute(
                formfield_table.insert().values(
                    form_id=draft_id,
                    field_key=field.field_key,
                    field_type=field.field_type.value,
                    label=field.label,
                    placeholder=field.placeholder,
                    help_text=field.help_text,
                    is_required=field.is_required,
                    display_order=field.display_order,
                    validation_rules=field.validation_rules,
                    field_config=field.field_config,
                    default_value=field.default_value,
                    is_deleted=False,
                    created_at=now,
                    updated_at=now,
                )
            )

    draft = await _reload(draft_id)
    logger.info(f"Draft created: {draft.slug} (v{draft.version}) from form {source.id}")
    return draft


async def update_form(form_id: int, owner_id: int, form_update: FormUpdateIn) -> Form:
    form = await get_form_and_verify_ownership(form_id, owner_id)

    if form.status != FormStatus.DRAFT:
        raise StateConflictError(
            f"Cannot edit a {form.status.value} form directly. Create a draft first."
        )

    changes = form_update.model_dump(exclude_none=True)
    query = (
        form_table.update()
        .where(form_table.c.id == form.id)
        .values(**changes, updated_at=utcnow())
    )
    await database.execute(query)

    logger.info(f"Form updated: {form.slug}", extra={"fields": sorted(changes)})
    return await _reload(form.id)


async def delete_form(form_id: int, owner_id: int) -> None:
    form = await get_form_and_verify_ownership(form_id, owner_id)
    query = (
        form_table.update()
        .where(form_table.c.id == form.id)
        .values(is_deleted=True, updated_at=utcnow())
    )
    await database.execute(query)
    logger.info(f"Form deleted: {form.slug} (v{form.version})")


async def publish_form(form_id: int, owner_id: int) -> Form:
    form = await get_form_and_verify_ownership(form_id, owner_id)

    if form.status == FormStatus.PUBLISHED:
        return form
    if form.status != FormStatus.DRAFT:
        raise StateConflictError("Only DRAFT forms can be published")

    now = utcnow()
    async with database.transaction():
        # Deleted siblings still count: a soft-deleted row keeps its status.
        archive_query = (
            form_table.update()
            .where(
                sqlalchemy.or_(
                    form_table.c.group_id == form.group_id,
                    form_table.c.slug == form.slug,
                ),
                form_table.c.status == FormStatus.PUBLISHED.value,
                form_table.c.id != form.id,
            )
            .values(status=FormStatus.ARCHIVED.value, updated_at=now)
        )
        await database.execute(archive_query)

        publish_query = (
            form_table.update()
            .where(form_table.c.id == form.id)
            .values(status=FormStatus.PUBLISHED.value, published_at=now, updated_at=now)
        )
        await database.execute(publish_query)

    logger.info(f"Form published: {form.slug} (v{form.version})")
    return await _reload(form.id)


async def archive_form(form_id: int, owner_id: int) -> Form:
    form = await get_form_and_verify_ownership(form_id, owner_id)
    query = (
        form_table.update()
        .where(form_table.c.id == form.id)
        .values(status=FormStatus.ARCHIVED.value, updated_at=utcnow())
    )
    await database.execute(query)
    logger.info(f"Form archived: {form.slug} (v{form.version})")
    return await _reload(form.id)


async def get_live_form(slug: str) -> Form:
    query = form_table.select().where(
        form_table.c.slug == slug,
        form_table.c.status == FormStatus.PUBLISHED.value,
        form_table.c.is_deleted == sqlalchemy.false(),
    )
    row = await database.fetch_one(query)
    if not row:
        raise NotFoundError("Form", slug)
    return form_from_row(row)


async def get_public_form(slug: str) -> PublicForm:
    form = await get_live_form(slug)
    fields = await fetch_active_fields(form.id)
    return PublicForm(
        slug=form.slug,
        title=form.title,
        description=form.description,
        settings=form.settings,
        fields=[
            PublicField(**field.model_dump(mode="json", include=set(PublicField.model_fields)))
            for field in fields
        ],
        load_timestamp=now_ms(),
    )
