import os
from typing import AsyncGenerator, Generator

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

os.environ["ENV_STATE"] = "test"
from formforge.database import database, user_table, utcnow  # noqa: E402
from formforge.main import app  # noqa: E402
from formforge.models.field import FieldIn  # noqa: E402
from formforge.models.form import FormIn  # noqa: E402
from formforge.security import get_password_hash  # noqa: E402
from formforge.services import fields as field_service  # noqa: E402
from formforge.services import forms as form_service  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def client() -> Generator:
    yield TestClient(app)


@pytest.fixture()
async def db() -> AsyncGenerator:
    await database.connect()
    yield database
    await database.disconnect()


@pytest.fixture()
async def async_client(db) -> AsyncGenerator:
    app.state.rate_limiter.reset()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def insert_user(email: str) -> int:
    return await database.execute(
        user_table.insert().values(
            email=email,
            username=email.split("@")[0],
            password_hash=get_password_hash("secret123"),
            created_at=utcnow(),
        )
    )


@pytest.fixture()
async def owner_id(db) -> int:
    return await insert_user("owner@example.com")


@pytest.fixture()
async def other_owner_id(db) -> int:
    return await insert_user("intruder@example.com")


@pytest.fixture()
async def draft_form(owner_id):
    form = await form_service.create_form(owner_id, FormIn(title="Customer Feedback"))
    await field_service.create_field(
        form.id,
        owner_id,
        FieldIn(field_key="name", field_type="TEXT", label="Name", is_required=True),
    )
    await field_service.create_field(
        form.id,
        owner_id,
        FieldIn(field_key="email", field_type="EMAIL", label="Email"),
    )
    await field_service.create_field(
        form.id,
        owner_id,
        FieldIn(
            field_key="age",
            field_type="NUMBER",
            label="Age",
            validation_rules={"min": 0, "max": 150},
        ),
    )
    await field_service.create_field(
        form.id,
        owner_id,
        FieldIn(field_key="subscribe", field_type="CHECKBOX", label="Subscribe"),
    )
    return form


@pytest.fixture()
async def live_form(draft_form, owner_id):
    return await form_service.publish_form(draft_form.id, owner_id)
