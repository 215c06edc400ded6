"""
Typed value mapping for the field_value secondary index.

Every submitted string is mapped onto exactly one typed slot (text, number,
timestamp or boolean) according to the declared field type. Mapping never
fails: a value that does not parse for its type lands in the text slot, since
the response payload blob stays the record of truth and the typed row only
serves filtering.
"""
import datetime
import math
import re
from typing import NamedTuple, Optional

from formforge.models.field import FieldType

TEXT_TYPES = {
    FieldType.TEXT,
    FieldType.EMAIL,
    FieldType.TEXTAREA,
    FieldType.DROPDOWN,
    FieldType.RADIO,
}
TRUTHY = {"true", "yes", "1", "on"}

DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


class TypedValue(NamedTuple):
    text: Optional[str] = None
    number: Optional[float] = None
    timestamp: Optional[datetime.datetime] = None
    boolean: Optional[bool] = None

    def populated_slots(self) -> int:
        return sum(slot is not None for slot in self)

    def assert_single_slot(self) -> None:
        count = self.populated_slots()
        if count != 1:
            raise ValueError(f"Exactly one value slot must be populated, found {count}")

    def as_row(self) -> dict:
        return {
            "value_text": self.text,
            "value_number": self.number,
            "value_date": self.timestamp,
            "value_boolean": self.boolean,
        }


def parse_decimal(value: str) -> Optional[float]:
    candidate = value.strip()
    if not DECIMAL_PATTERN.match(candidate):
        return None
    number = float(candidate)
    return number if math.isfinite(number) else None


def parse_timestamp(value: str) -> Optional[datetime.datetime]:
    candidate = value.strip()
    if candidate[-1:] in ("Z", "z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(candidate)
    except ValueError:
        try:
            parsed = datetime.datetime.combine(
                datetime.date.fromisoformat(candidate), datetime.time.min
            )
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return parsed


def map_value(field_type: FieldType, value: Optional[str]) -> Optional[TypedValue]:
    field_type = FieldType(field_type)
    blank = value is None or not value.strip()

    if field_type == FieldType.CHECKBOX:
        # An unchecked box is still an answer
        return TypedValue(boolean=not blank and value.strip().lower() in TRUTHY)

    if blank:
        return None

    if field_type in TEXT_TYPES:
        return TypedValue(text=value)

    if field_type == FieldType.NUMBER:
        number = parse_decimal(value)
        return TypedValue(number=number) if number is not None else TypedValue(text=value)

    if field_type == FieldType.DATE:
        timestamp = parse_timestamp(value)
        return TypedValue(timestamp=timestamp) if timestamp is not None else TypedValue(text=value)

    return TypedValue(text=value)
