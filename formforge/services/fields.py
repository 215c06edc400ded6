import logging
from typing import List

import sqlalchemy

from formforge.database import database, form_table, formfield_table, utcnow
from formforge.errors import DuplicateError, NotFoundError, StateConflictError
from formforge.models.field import Field, FieldIn, FieldOrder, FieldUpdateIn
from formforge.models.form import Form, FormStatus
from formforge.services.forms import fetch_active_fields, field_from_row, form_from_row

logger = logging.getLogger(__name__)


async def verify_form_ownership(form_id: int, owner_id: int) -> Form:
    # Another owner's form reads as missing here so its existence is not leaked.
    query = form_table.select().where(
        form_table.c.id == form_id,
        form_table.c.owner_id == owner_id,
        form_table.c.is_deleted == sqlalchemy.false(),
    )
    row = await database.fetch_one(query)
    if not row:
        raise NotFoundError("Form", form_id)
    return form_from_row(row)


async def verify_form_editable(form_id: int, owner_id: int) -> Form:
    form = await verify_form_ownership(form_id, owner_id)
    if form.status != FormStatus.DRAFT:
        raise StateConflictError(
            f"Cannot edit a {form.status.value} form. Please create a draft first."
        )
    return form


async def get_active_field(form_id: int, field_id: int) -> Field:
    query = formfield_table.select().where(
        formfield_table.c.id == field_id,
        formfield_table.c.form_id == form_id,
        formfield_table.c.is_deleted == sqlalchemy.false(),
    )
    row = await database.fetch_one(query)
    if not row:
        raise NotFoundError("Field", field_id)
    return field_from_row(row)


async def key_in_use(form_id: int, field_key: str) -> bool:
    query = formfield_table.select().where(
        formfield_table.c.form_id == form_id,
        formfield_table.c.field_key == field_key,
        formfield_table.c.is_deleted == sqlalchemy.false(),
    )
    return await database.fetch_one(query) is not None


async def list_fields(form_id: int, owner_id: int) -> List[Field]:
    await verify_form_ownership(form_id, owner_id)
    return await fetch_active_fields(form_id)


async def create_field(form_id: int, owner_id: int, field_in: FieldIn) -> Field:
    await verify_form_editable(form_id, owner_id)

    async with database.transaction():
        if await key_in_use(form_id, field_in.field_key):
            raise DuplicateError("Field", "field_key", field_in.field_key)

        max_order = await database.fetch_val(
            sqlalchemy.select(
                sqlalchemy.func.coalesce(sqlalchemy.func.max(formfield_table.c.display_order), 0)
            ).where(
                formfield_table.c.form_id == form_id,
                formfield_table.c.is_deleted == sqlalchemy.false(),
            )
        )

        now = utcnow()
        values = field_in.model_dump()
        values["field_type"] = field_in.field_type.value
        field_id = await database.execute(
            formfield_table.insert().values(
                **values,
                form_id=form_id,
                display_order=max_order + 1,
                is_deleted=False,
                created_at=now,
                updated_at=now,
            )
        )

    field = await get_active_field(form_id, field_id)
    logger.info(f"Field created: {field.field_key} for form {form_id}")
    return field


async def update_field(form_id: int, field_id: int, owner_id: int, field_update: FieldUpdateIn) -> Field:
    await verify_form_editable(form_id, owner_id)
    field = await get_active_field(form_id, field_id)

    changes = field_update.model_dump(exclude_none=True)
    if "field_type" in changes:
        changes["field_type"] = field_update.field_type.value

    async with database.transaction():
        new_key = changes.get("field_key")
        if new_key and new_key != field.field_key and await key_in_use(form_id, new_key):
            raise DuplicateError("Field", "field_key", new_key)

        query = (
            formfield_table.update()
            .where(formfield_table.c.id == field.id)
            .values(**changes, updated_at=utcnow())
        )
        await database.execute(query)

    field = await get_active_field(form_id, field_id)
    logger.info(f"Field updated: {field.field_key}", extra={"fields": sorted(changes)})
    return field


async def delete_field(form_id: int, field_id: int, owner_id: int) -> None:
    await verify_form_editable(form_id, owner_id)
    field = await get_active_field(form_id, field_id)

    query = (
        formfield_table.update()
        .where(formfield_table.c.id == field.id)
        .values(is_deleted=True, updated_at=utcnow())
    )
    await database.execute(query)
    logger.info(f"Field deleted: {field.field_key} from form {form_id}")


async def reorder_fields(form_id: int, owner_id: int, field_order: List[FieldOrder]) -> List[Field]:
    """
    Apply the given display orders as-is. Fields not listed keep their order;
    gaps and repeated orders are accepted.
    """
    await verify_form_editable(form_id, owner_id)

    async with database.transaction():
        for item in field_order:
            query = (
                formfield_table.update()
                .where(
                    formfield_table.c.id == item.field_id,
                    formfield_table.c.form_id == form_id,
                )
                .values(display_order=item.display_order, updated_at=utcnow())
            )
            await database.execute(query)

    logger.info(f"Fields reordered for form {form_id}")
    return await fetch_active_fields(form_id)
