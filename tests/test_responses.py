import datetime
import json

import pytest
import sqlalchemy

from formforge.database import database, fieldvalue_table, formresponse_table
from formforge.errors import NotFoundError, ValidationFailedError
from formforge.guards import SubmissionGuard
from formforge.models.response import SubmissionIn
from formforge.services import capture
from formforge.services import responses as response_service
from formforge.snapshot import build_snapshot

pytestmark = pytest.mark.anyio


async def submit(slug, values, client_ip="198.51.100.1"):
    return await capture.submit_response(
        slug,
        SubmissionIn(values=values),
        client_ip=client_ip,
        guard=SubmissionGuard(min_elapsed_ms=0),
    )


async def test_list_responses_newest_first(live_form, owner_id):
    first = await submit(live_form.slug, {"name": "Ada"})
    second = await submit(live_form.slug, {"name": "Bob"})

    page = await response_service.list_responses(live_form.id, owner_id)

    assert page["total"] == 2
    assert [r.id for r in page["responses"]] == [second.response_id, first.response_id]
    assert page["responses"][0].values == {"name": "Bob"}


async def test_get_response_detail(live_form, owner_id):
    result = await submit(live_form.slug, {"name": "Ada", "age": "41"})

    detail = await response_service.get_response(live_form.id, result.response_id, owner_id)

    assert detail.values == {"name": "Ada", "age": "41"}
    assert [e["field_key"] for e in detail.schema_snapshot] == ["name", "email", "age", "subscribe"]
    numbers = [v.value_number for v in detail.field_values if v.value_number is not None]
    assert numbers == [41.0]


async def test_responses_hidden_from_other_owner(live_form, other_owner_id):
    with pytest.raises(NotFoundError):
        await response_service.list_responses(live_form.id, other_owner_id)


async def test_delete_response_removes_typed_rows(live_form, owner_id):
    result = await submit(live_form.slug, {"name": "Ada", "age": "41"})

    await response_service.delete_response(live_form.id, result.response_id, owner_id)

    with pytest.raises(NotFoundError):
        await response_service.get_response(live_form.id, result.response_id, owner_id)
    leftover = await database.fetch_val(
        sqlalchemy.select(sqlalchemy.func.count()).select_from(fieldvalue_table).where(
            fieldvalue_table.c.response_id == result.response_id
        )
    )
    assert leftover == 0


async def test_filter_by_number_range(live_form, owner_id):
    await submit(live_form.slug, {"name": "Young", "age": "18"})
    middle = await submit(live_form.slug, {"name": "Middle", "age": "40"})
    await submit(live_form.slug, {"name": "Old", "age": "80"})

    page = await response_service.filter_responses(
        live_form.id, owner_id, "age", min_number=30, max_number=60
    )
    assert [r.id for r in page["responses"]] == [middle.response_id]


async def test_filter_by_text_and_boolean(live_form, owner_id):
    ada = await submit(live_form.slug, {"name": "Ada Lovelace", "subscribe": "yes"})
    await submit(live_form.slug, {"name": "Bob", "subscribe": "no"})

    by_text = await response_service.filter_responses(live_form.id, owner_id, "name", text="Love")
    assert [r.id for r in by_text["responses"]] == [ada.response_id]

    by_flag = await response_service.filter_responses(live_form.id, owner_id, "subscribe", boolean=True)
    assert [r.id for r in by_flag["responses"]] == [ada.response_id]


async def test_filter_requires_a_predicate(live_form, owner_id):
    with pytest.raises(ValidationFailedError):
        await response_service.filter_responses(live_form.id, owner_id, "age")


async def test_export_csv(live_form, owner_id):
    await submit(live_form.slug, {"name": "Doe, Jane", "email": "jane@example.com", "age": "33"})

    csv_text = await response_service.export_csv(live_form.id, owner_id)
    lines = csv_text.splitlines()

    assert lines[0] == "submittedAt,submissionIp,name,email,age,subscribe"
    assert lines[1].endswith(',198.51.100.1,"Doe, Jane",jane@example.com,33,')


async def test_export_without_responses(live_form, owner_id):
    csv_text = await response_service.export_csv(live_form.id, owner_id)
    assert csv_text == "submittedAt,submissionIp\n"


async def test_export_csv_one_row_per_response(live_form, owner_id):
    await submit(live_form.slug, {"name": "Doe, Jane", "age": "33"}, client_ip="198.51.100.1")
    await submit(live_form.slug, {"name": 'Say "hi"', "subscribe": "yes"}, client_ip="198.51.100.2")

    csv_text = await response_service.export_csv(live_form.id, owner_id)
    lines = csv_text.splitlines()

    assert len(lines) == 3
    assert lines[0] == "submittedAt,submissionIp,name,email,age,subscribe"
    assert lines[1].endswith(',198.51.100.2,"Say ""hi""",,,yes')
    assert lines[2].endswith(',198.51.100.1,"Doe, Jane",,33,')


async def insert_response(form_id, submitted_at, values, snapshot_keys):
    snapshot = build_snapshot(
        [
            {"id": i, "field_key": key, "field_type": "TEXT", "label": key.title(),
             "is_required": False, "display_order": i, "is_deleted": False,
             "validation_rules": None, "field_config": None}
            for i, key in enumerate(snapshot_keys, start=1)
        ]
    )
    return await database.execute(
        formresponse_table.insert().values(
            form_id=form_id,
            submission_ip="192.0.2.1",
            status="COMPLETED",
            form_version=1,
            response_json=json.dumps(values),
            form_schema_snapshot=snapshot,
            submitted_at=submitted_at,
            created_at=submitted_at,
        )
    )


async def test_export_columns_follow_newest_snapshot(live_form, owner_id):
    await insert_response(
        live_form.id,
        datetime.datetime(2024, 1, 1, 9, 0),
        {"name": "Old", "email": "old@example.com", "age": "30"},
        ["name", "email", "age"],
    )
    await insert_response(
        live_form.id,
        datetime.datetime(2024, 1, 2, 9, 0),
        {"name": "New"},
        ["name", "email"],
    )

    lines = (await response_service.export_csv(live_form.id, owner_id)).splitlines()

    assert lines == [
        "submittedAt,submissionIp,name,email",
        "2024-01-02T09:00:00,192.0.2.1,New,",
        "2024-01-01T09:00:00,192.0.2.1,Old,old@example.com",
    ]
