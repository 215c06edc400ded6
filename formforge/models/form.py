from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as PydanticField

from formforge.models.field import Field


class FormStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class FormIn(BaseModel):
    title: str = PydanticField(min_length=1, max_length=255)
    description: Optional[str] = PydanticField(default=None, max_length=5000)
    # e.g. {"theme": "light", "showProgressBar": true}
    settings: Optional[Dict[str, Any]] = None


class FormUpdateIn(BaseModel):
    title: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    description: Optional[str] = PydanticField(default=None, max_length=5000)
    settings: Optional[Dict[str, Any]] = None


class Form(BaseModel):
    id: int
    group_id: str
    slug: str
    owner_id: int
    title: str
    description: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    status: FormStatus
    version: int
    is_deleted: bool = False
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FormDetail(Form):
    fields: List[Field] = []


class FormSummary(Form):
    field_count: int = 0
    response_count: int = 0


class PublicField(BaseModel):
    field_key: str
    field_type: str
    label: str
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    is_required: bool = False
    display_order: int
    validation_rules: Optional[Dict[str, Any]] = None
    field_config: Optional[Dict[str, Any]] = None
    default_value: Optional[str] = None


class PublicForm(BaseModel):
    slug: str
    title: str
    description: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    fields: List[PublicField] = []
    load_timestamp: int
