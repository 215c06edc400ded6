import datetime
import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Response
from formforge.models.field import Field, FieldIn, FieldUpdateIn, ReorderIn
from formforge.models.form import Form, FormDetail, FormIn, FormStatus, FormUpdateIn
from formforge.models.response import ResponseDetail
from formforge.models.user import User
from formforge.security import get_current_user
from formforge.services import fields as field_service
from formforge.services import forms as form_service
from formforge.services import responses as response_service

logger = logging.getLogger(__name__)
router = APIRouter()

CurrentUser = Annotated[User, Depends(get_current_user)]


@router.get("", status_code=200)
async def list_forms(
    current_user: CurrentUser,
    status: Optional[FormStatus] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    return await form_service.list_forms(current_user.id, status, page, per_page)


@router.post("", response_model=Form, status_code=201)
async def create_form(form: FormIn, current_user: CurrentUser):
    return await form_service.create_form(current_user.id, form)


@router.get("/{fid}", response_model=FormDetail, status_code=200)
async def get_form(fid: int, current_user: CurrentUser):
    return await form_service.get_form(fid, current_user.id)


@router.put("/{fid}", response_model=Form, status_code=200)
async def update_form(fid: int, form: FormUpdateIn, current_user: CurrentUser):
    return await form_service.update_form(fid, current_user.id, form)


@router.delete("/{fid}", status_code=204)
async def delete_form(fid: int, current_user: CurrentUser):
    await form_service.delete_form(fid, current_user.id)
    return Response(status_code=204)


@router.post("/{fid}/draft", response_model=Form, status_code=201)
async def create_draft(fid: int, current_user: CurrentUser):
    return await form_service.create_draft(fid, current_user.id)


@router.post("/{fid}/publish", response_model=Form, status_code=200)
async def publish_form(fid: int, current_user: CurrentUser):
    return await form_service.publish_form(fid, current_user.id)


@router.post("/{fid}/archive", response_model=Form, status_code=200)
async def archive_form(fid: int, current_user: CurrentUser):
    return await form_service.archive_form(fid, current_user.id)


@router.get("/{fid}/versions", response_model=List[Form], status_code=200)
async def list_versions(fid: int, current_user: CurrentUser):
    return await form_service.list_versions(fid, current_user.id)


# Fields

@router.get("/{fid}/fields", response_model=List[Field], status_code=200)
async def list_fields(fid: int, current_user: CurrentUser):
    return await field_service.list_fields(fid, current_user.id)


@router.post("/{fid}/fields", response_model=Field, status_code=201)
async def create_field(fid: int, field: FieldIn, current_user: CurrentUser):
    return await field_service.create_field(fid, current_user.id, field)


@router.put("/{fid}/fields/order", response_model=List[Field], status_code=200)
async def reorder_fields(fid: int, body: ReorderIn, current_user: CurrentUser):
    return await field_service.reorder_fields(fid, current_user.id, body.field_order)


@router.put("/{fid}/fields/{field_id}", response_model=Field, status_code=200)
async def update_field(fid: int, field_id: int, field: FieldUpdateIn, current_user: CurrentUser):
    return await field_service.update_field(fid, field_id, current_user.id, field)


@router.delete("/{fid}/fields/{field_id}", status_code=204)
async def delete_field(fid: int, field_id: int, current_user: CurrentUser):
    await field_service.delete_field(fid, field_id, current_user.id)
    return Response(status_code=204)


# Responses

@router.get("/{fid}/responses", status_code=200)
async def list_responses(
    fid: int,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    return await response_service.list_responses(fid, current_user.id, page, per_page)


@router.get("/{fid}/responses/filter", status_code=200)
async def filter_responses(
    fid: int,
    field_key: str,
    current_user: CurrentUser,
    text: Optional[str] = None,
    min_number: Optional[float] = None,
    max_number: Optional[float] = None,
    after: Optional[datetime.datetime] = None,
    before: Optional[datetime.datetime] = None,
    boolean: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    return await response_service.filter_responses(
        fid,
        current_user.id,
        field_key,
        text=text,
        min_number=min_number,
        max_number=max_number,
        after=after,
        before=before,
        boolean=boolean,
        page=page,
        per_page=per_page,
    )


@router.get("/{fid}/responses/export", status_code=200)
async def export_responses(fid: int, current_user: CurrentUser):
    csv_text = await response_service.export_csv(fid, current_user.id)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="responses.csv"'},
    )


@router.get("/{fid}/responses/{rid}", response_model=ResponseDetail, status_code=200)
async def get_response(fid: int, rid: int, current_user: CurrentUser):
    return await response_service.get_response(fid, rid, current_user.id)


@router.delete("/{fid}/responses/{rid}", status_code=204)
async def delete_response(fid: int, rid: int, current_user: CurrentUser):
    await response_service.delete_response(fid, rid, current_user.id)
    return Response(status_code=204)
