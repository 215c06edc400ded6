from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator


class ResponseStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    INVALID = "INVALID"


class SubmissionIn(BaseModel):
    # field_key -> submitted value, e.g. {"email": "user@example.com", "age": "25"}
    values: Dict[str, Optional[str]] = {}
    # Hidden field, must stay empty for real respondents
    honeypot: Optional[str] = None
    # Epoch milliseconds at which the public form was rendered
    load_timestamp: Optional[int] = None

    @field_validator("values", mode="before")
    @classmethod
    def stringify_values(cls, values):
        if not isinstance(values, dict):
            return values
        out = {}
        for key, value in values.items():
            if isinstance(value, bool):
                out[key] = "true" if value else "false"
            elif isinstance(value, (int, float)):
                out[key] = str(value)
            else:
                out[key] = value
        return out


class SubmissionResult(BaseModel):
    message: str = "Response submitted successfully"
    response_id: int


class FieldValue(BaseModel):
    id: int
    response_id: int
    field_id: int
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_date: Optional[datetime] = None
    value_boolean: Optional[bool] = None


class ResponseSummary(BaseModel):
    id: int
    form_id: int
    respondent_id: Optional[int] = None
    submission_ip: Optional[str] = None
    status: ResponseStatus
    form_version: int
    values: Dict[str, Any] = {}
    submitted_at: datetime


class ResponseDetail(ResponseSummary):
    schema_snapshot: List[Dict[str, Any]] = []
    field_values: List[FieldValue] = []
