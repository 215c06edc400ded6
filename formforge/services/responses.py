import csv
import datetime
import io
import json
import logging
from typing import Optional

import sqlalchemy

from formforge.database import (
    database,
    fieldvalue_table,
    formfield_table,
    formresponse_table,
)
from formforge.errors import NotFoundError, ValidationFailedError
from formforge.models.response import FieldValue, ResponseDetail, ResponseSummary
from formforge.services.fields import verify_form_ownership
from formforge.snapshot import load_snapshot

logger = logging.getLogger(__name__)

FIXED_COLUMNS = ("submittedAt", "submissionIp")


def summary_from_row(row) -> ResponseSummary:
    return ResponseSummary(
        id=row.id,
        form_id=row.form_id,
        respondent_id=row.respondent_id,
        submission_ip=row.submission_ip,
        status=row.status,
        form_version=row.form_version,
        values=json.loads(row.response_json),
        submitted_at=row.submitted_at,
    )


def _paged(rows, total_count: int, page: int, per_page: int) -> dict:
    return {
        "responses": [summary_from_row(row) for row in rows],
        "page": page,
        "per_page": per_page,
        "total": total_count,
        "total_pages": (total_count + per_page - 1) // per_page,
    }


async def _page_of(condition, page: int, per_page: int) -> dict:
    offset = (page - 1) * per_page

    count_query = sqlalchemy.select(sqlalchemy.func.count()).select_from(formresponse_table).where(condition)
    total_count = await database.fetch_val(count_query)

    query = (
        formresponse_table.select()
        .where(condition)
        .order_by(formresponse_table.c.submitted_at.desc(), formresponse_table.c.id.desc())
        .limit(per_page)
        .offset(offset)
    )
    rows = await database.fetch_all(query)
    return _paged(rows, total_count, page, per_page)


async def _get_response_row(form_id: int, response_id: int):
    query = formresponse_table.select().where(
        formresponse_table.c.id == response_id,
        formresponse_table.c.form_id == form_id,
    )
    row = await database.fetch_one(query)
    if not row:
        raise NotFoundError("Response", response_id)
    return row


async def list_responses(form_id: int, owner_id: int, page: int = 1, per_page: int = 20) -> dict:
    await verify_form_ownership(form_id, owner_id)
    return await _page_of(formresponse_table.c.form_id == form_id, page, per_page)


async def get_response(form_id: int, response_id: int, owner_id: int) -> ResponseDetail:
    await verify_form_ownership(form_id, owner_id)
    row = await _get_response_row(form_id, response_id)

    value_rows = await database.fetch_all(
        fieldvalue_table.select()
        .where(fieldvalue_table.c.response_id == row.id)
        .order_by(fieldvalue_table.c.id)
    )

    return ResponseDetail(
        **summary_from_row(row).model_dump(),
        # Rendered from what was stored at submission, never from current fields
        schema_snapshot=load_snapshot(row.form_schema_snapshot),
        field_values=[FieldValue(**dict(v._mapping)) for v in value_rows],
    )


async def delete_response(form_id: int, response_id: int, owner_id: int) -> None:
    await verify_form_ownership(form_id, owner_id)
    row = await _get_response_row(form_id, response_id)

    async with database.transaction():
        await database.execute(
            fieldvalue_table.delete().where(fieldvalue_table.c.response_id == row.id)
        )
        await database.execute(
            formresponse_table.delete().where(formresponse_table.c.id == row.id)
        )

    logger.info(f"Response deleted: {response_id} from form {form_id}")


async def filter_responses(
    form_id: int,
    owner_id: int,
    field_key: str,
    text: Optional[str] = None,
    min_number: Optional[float] = None,
    max_number: Optional[float] = None,
    after: Optional[datetime.datetime] = None,
    before: Optional[datetime.datetime] = None,
    boolean: Optional[bool] = None,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Find responses through the typed field_value rows of one field key.

    The key is matched against every field row ever created on this form
    version, deleted ones included, so responses captured before a field was
    removed stay searchable.
    """
    await verify_form_ownership(form_id, owner_id)

    predicates = []
    if text is not None:
        predicates.append(fieldvalue_table.c.value_text.contains(text, autoescape=True))
    if min_number is not None:
        predicates.append(fieldvalue_table.c.value_number >= min_number)
    if max_number is not None:
        predicates.append(fieldvalue_table.c.value_number <= max_number)
    if after is not None:
        predicates.append(fieldvalue_table.c.value_date >= after)
    if before is not None:
        predicates.append(fieldvalue_table.c.value_date <= before)
    if boolean is not None:
        predicates.append(fieldvalue_table.c.value_boolean == boolean)

    if not predicates:
        raise ValidationFailedError(
            "At least one filter is required",
            {"filter": "Provide text, min_number, max_number, after, before or boolean"},
        )

    matching = (
        sqlalchemy.select(fieldvalue_table.c.response_id)
        .select_from(
            fieldvalue_table.join(formfield_table, fieldvalue_table.c.field_id == formfield_table.c.id)
        )
        .where(
            formfield_table.c.form_id == form_id,
            formfield_table.c.field_key == field_key,
            *predicates,
        )
    )
    condition = sqlalchemy.and_(
        formresponse_table.c.form_id == form_id,
        formresponse_table.c.id.in_(matching),
    )
    return await _page_of(condition, page, per_page)


def _csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    return str(value)


async def export_csv(form_id: int, owner_id: int) -> str:
    """
    Export every response of a form version as CSV, straight from the payload
    blobs.

    Columns come from the schema snapshot of the first (most recent) response.
    Responses captured under a different field set get blanks for missing keys
    and lose keys that are not in that snapshot.
    """
    await verify_form_ownership(form_id, owner_id)

    rows = await database.fetch_all(
        formresponse_table.select()
        .where(formresponse_table.c.form_id == form_id)
        .order_by(formresponse_table.c.submitted_at.desc(), formresponse_table.c.id.desc())
    )

    columns = list(FIXED_COLUMNS)
    if rows:
        for entry in load_snapshot(rows[0].form_schema_snapshot):
            if entry["field_key"] not in columns:
                columns.append(entry["field_key"])

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)

    for row in rows:
        values = json.loads(row.response_json)
        record = []
        for column in columns:
            if column == "submittedAt":
                record.append(_csv_value(row.submitted_at))
            elif column == "submissionIp":
                record.append(_csv_value(row.submission_ip))
            else:
                record.append(_csv_value(values.get(column)))
        writer.writerow(record)

    logger.info(f"Exported {len(rows)} responses for form {form_id}")
    return buffer.getvalue()
