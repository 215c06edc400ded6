"""
Response capture.

A submission against a live form is resolved, screened, validated and then
stored twice in one transaction: the submitted map verbatim as the response
payload (read path for display and export) and one typed field_value row per
known field (filter path). The schema snapshot stored next to the payload
records the fields as they were at submission time.
"""
import json
import logging
import re
from typing import Dict, List, Optional

from formforge.database import database, fieldvalue_table, formresponse_table, utcnow
from formforge.errors import ValidationFailedError
from formforge.guards import SubmissionGuard
from formforge.models.field import Field, FieldType
from formforge.models.response import ResponseStatus, SubmissionIn, SubmissionResult
from formforge.services.forms import fetch_active_fields, get_live_form
from formforge.snapshot import build_snapshot
from formforge.typed_values import map_value, parse_decimal

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[\w.+-]+@([\w-]+\.)+[\w-]{2,}$")


def _check_rules(field: Field, value: str, errors: Dict[str, str]) -> None:
    rules = field.validation_rules or {}
    key = field.field_key

    if field.field_type == FieldType.NUMBER:
        number = parse_decimal(value)
        if number is None:
            errors[key] = "Must be a valid number"
            return
        if "min" in rules and number < float(rules["min"]):
            errors[key] = f"Must be at least {rules['min']}"
        elif "max" in rules and number > float(rules["max"]):
            errors[key] = f"Must be at most {rules['max']}"
        return

    if field.field_type == FieldType.EMAIL and not EMAIL_PATTERN.match(value.strip()):
        errors[key] = "Invalid email format"
        return

    if "minLength" in rules and len(value) < int(rules["minLength"]):
        errors[key] = f"Must be at least {rules['minLength']} characters"
    elif "maxLength" in rules and len(value) > int(rules["maxLength"]):
        errors[key] = f"Must be at most {rules['maxLength']} characters"
    elif "pattern" in rules:
        try:
            matched = re.fullmatch(rules["pattern"], value)
        except re.error:
            logger.warning(f"Ignoring invalid pattern on field {key}: {rules['pattern']!r}")
            return
        if not matched:
            errors[key] = "Invalid format"


def validate_submission(fields: List[Field], values: Dict[str, Optional[str]]) -> None:
    """Check every active field and raise once with all failures."""
    errors: Dict[str, str] = {}

    for field in fields:
        value = values.get(field.field_key)
        blank = value is None or not value.strip()

        if blank:
            if field.is_required:
                errors[field.field_key] = f"{field.label} is required"
            continue

        _check_rules(field, value, errors)

    if errors:
        raise ValidationFailedError("Validation failed", errors)


def derive_field_values(fields: List[Field], values: Dict[str, Optional[str]]) -> List[dict]:
    """One typed row per submitted key that names an active field."""
    by_key = {field.field_key: field for field in fields}
    rows = []
    for key, value in values.items():
        field = by_key.get(key)
        if field is None:
            continue
        typed = map_value(field.field_type, value)
        if typed is None:
            continue
        typed.assert_single_slot()
        rows.append({"field_id": field.id, **typed.as_row()})
    return rows


async def submit_response(
    slug: str,
    submission: SubmissionIn,
    client_ip: Optional[str],
    respondent_id: Optional[int] = None,
    guard: Optional[SubmissionGuard] = None,
) -> SubmissionResult:
    guard = guard or SubmissionGuard()

    async with database.transaction():
        form = await get_live_form(slug)

        guard.check(submission.honeypot, submission.load_timestamp)

        fields = await fetch_active_fields(form.id)
        validate_submission(fields, submission.values)

        schema_snapshot = build_snapshot(fields)
        response_json = json.dumps(submission.values, ensure_ascii=False)
        field_values = derive_field_values(fields, submission.values)

        now = utcnow()
        response_id = await database.execute(
            formresponse_table.insert().values(
                form_id=form.id,
                respondent_id=respondent_id,
                submission_ip=client_ip,
                status=ResponseStatus.COMPLETED.value,
                form_version=form.version,
                response_json=response_json,
                form_schema_snapshot=schema_snapshot,
                submitted_at=now,
                created_at=now,
            )
        )
        for row in field_values:
            await database.execute(
                fieldvalue_table.insert().values(**row, response_id=response_id, created_at=now)
            )

    logger.info(
        f"Response submitted: {response_id} for form {slug} (v{form.version})",
        extra={"field_values": len(field_values)},
    )
    return SubmissionResult(response_id=response_id)
