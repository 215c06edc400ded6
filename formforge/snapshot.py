import json
from typing import Any, Dict, Iterable, List


def _get(field, name):
    if isinstance(field, dict):
        return field.get(name)
    return getattr(field, name)


def build_snapshot(fields: Iterable) -> str:
    """
    Serialize the active field definitions of a form version, in display
    order, into the immutable schema blob stored with each response.
    """
    active = [f for f in fields if not _get(f, "is_deleted")]
    active.sort(key=lambda f: (_get(f, "display_order"), _get(f, "id") or 0))

    snapshot = []
    for f in active:
        field_type = _get(f, "field_type")
        snapshot.append(
            {
                "field_key": _get(f, "field_key"),
                "field_type": getattr(field_type, "value", field_type),
                "label": _get(f, "label"),
                "is_required": bool(_get(f, "is_required")),
                "validation_rules": _get(f, "validation_rules"),
                "field_config": _get(f, "field_config"),
            }
        )
    return json.dumps(snapshot, ensure_ascii=False)


def load_snapshot(blob: str) -> List[Dict[str, Any]]:
    if not blob:
        return []
    return json.loads(blob)
