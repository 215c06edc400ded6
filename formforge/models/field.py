import math
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as PydanticField, field_validator


class FieldType(str, Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    DROPDOWN = "DROPDOWN"
    CHECKBOX = "CHECKBOX"
    EMAIL = "EMAIL"
    TEXTAREA = "TEXTAREA"
    RADIO = "RADIO"


FIELD_KEY_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_]*$"

NUMERIC_RULES = ("min", "max")
LENGTH_RULES = ("minLength", "maxLength")


def check_validation_rules(rules: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reject rule values the submission validator could not apply."""
    if not rules:
        return rules

    for name in NUMERIC_RULES:
        if name not in rules:
            continue
        value = rules[name]
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"'{name}' must be a number")
        try:
            number = float(value)
        except ValueError:
            raise ValueError(f"'{name}' must be a number") from None
        if not math.isfinite(number):
            raise ValueError(f"'{name}' must be a finite number")

    for name in LENGTH_RULES:
        if name not in rules:
            continue
        value = rules[name]
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"'{name}' must be a non-negative integer")
        try:
            length = int(value)
        except ValueError:
            raise ValueError(f"'{name}' must be a non-negative integer") from None
        if length < 0:
            raise ValueError(f"'{name}' must be a non-negative integer")

    if "pattern" in rules:
        if not isinstance(rules["pattern"], str):
            raise ValueError("'pattern' must be a string")
        try:
            re.compile(rules["pattern"])
        except re.error as e:
            raise ValueError(f"'pattern' is not a valid regular expression: {e}") from None

    return rules


class FieldIn(BaseModel):
    field_key: str = PydanticField(min_length=1, max_length=100, pattern=FIELD_KEY_PATTERN)
    field_type: FieldType
    label: str = PydanticField(min_length=1, max_length=255)
    placeholder: Optional[str] = PydanticField(default=None, max_length=255)
    help_text: Optional[str] = PydanticField(default=None, max_length=1000)
    is_required: bool = False
    # e.g. {"minLength": 3, "maxLength": 100, "pattern": "^[a-zA-Z]+$"} or {"min": 0, "max": 100}
    validation_rules: Optional[Dict[str, Any]] = None
    # e.g. {"options": [{"value": "1", "label": "Option 1"}]}
    field_config: Optional[Dict[str, Any]] = None
    default_value: Optional[str] = PydanticField(default=None, max_length=500)

    @field_validator("validation_rules")
    @classmethod
    def rules_are_usable(cls, rules):
        return check_validation_rules(rules)


class FieldUpdateIn(BaseModel):
    field_key: Optional[str] = PydanticField(default=None, min_length=1, max_length=100, pattern=FIELD_KEY_PATTERN)
    field_type: Optional[FieldType] = None
    label: Optional[str] = PydanticField(default=None, min_length=1, max_length=255)
    placeholder: Optional[str] = PydanticField(default=None, max_length=255)
    help_text: Optional[str] = PydanticField(default=None, max_length=1000)
    is_required: Optional[bool] = None
    validation_rules: Optional[Dict[str, Any]] = None
    field_config: Optional[Dict[str, Any]] = None
    default_value: Optional[str] = PydanticField(default=None, max_length=500)

    @field_validator("validation_rules")
    @classmethod
    def rules_are_usable(cls, rules):
        return check_validation_rules(rules)


class Field(FieldIn):
    id: int
    form_id: int
    display_order: int
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FieldOrder(BaseModel):
    field_id: int
    display_order: int


class ReorderIn(BaseModel):
    field_order: List[FieldOrder]
