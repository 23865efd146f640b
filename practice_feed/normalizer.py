"""
Stored document → canonical models.

User documents can arrive either as native values or in the typed wire
encoding, where every value is wrapped in a single-key mapping:

  {"stringValue": "45"}            → "45"
  {"integerValue": "45"}           → 45
  {"arrayValue": {"values": [...]}} → [...]
  {"mapValue": {"fields": {...}}}   → {...}

Everything here is pure and never raises: a record that cannot be read is
returned as None and the caller drops it.
"""
import logging
from typing import Any, Iterable, Optional

from practice_feed.schemas import LogRecord, Profile

logger = logging.getLogger(__name__)

WRAPPER_TAGS = frozenset({
    "stringValue",
    "integerValue",
    "doubleValue",
    "booleanValue",
    "timestampValue",
    "arrayValue",
    "mapValue",
    "nullValue",
})


def _is_wrapper(value: Any) -> bool:
    return isinstance(value, dict) and len(value) == 1 and next(iter(value)) in WRAPPER_TAGS


def unwrap_value(value: Any) -> Any:
    """Return the plain value behind `value`, or None if it cannot be read."""
    if value is None:
        return None
    if not _is_wrapper(value):
        return value

    tag, inner = next(iter(value.items()))
    if tag == "stringValue" or tag == "timestampValue":
        return inner if isinstance(inner, str) else None
    if tag == "integerValue":
        if isinstance(inner, bool):
            return None
        try:
            return int(inner)
        except (TypeError, ValueError):
            return None
    if tag == "doubleValue":
        if isinstance(inner, bool):
            return None
        try:
            return float(inner)
        except (TypeError, ValueError):
            return None
    if tag == "booleanValue":
        return inner if isinstance(inner, bool) else None
    if tag == "arrayValue":
        items = inner.get("values", []) if isinstance(inner, dict) else inner
        if not isinstance(items, list):
            return None
        return [unwrap_value(item) for item in items]
    if tag == "mapValue":
        fields = inner.get("fields", {}) if isinstance(inner, dict) else None
        if not isinstance(fields, dict):
            return None
        return {k: unwrap_value(v) for k, v in fields.items()}
    # nullValue
    return None


def extract_string(value: Any) -> Optional[str]:
    unwrapped = unwrap_value(value)
    if isinstance(unwrapped, bool):
        return "true" if unwrapped else "false"
    if isinstance(unwrapped, str):
        return unwrapped
    if isinstance(unwrapped, (int, float)):
        return str(unwrapped)
    return None


def extract_string_list(value: Any) -> list[str]:
    unwrapped = unwrap_value(value)
    if not isinstance(unwrapped, list):
        return []
    # items were unwrapped along with the array; plain lists still need it
    result = []
    for item in unwrapped:
        tag = extract_string(item)
        if tag is not None:
            result.append(tag)
    return result


def normalize_log(raw: Any) -> Optional[LogRecord]:
    """
    Canonical LogRecord for one stored log entry, or None.

    created_at and duration are required. created_at is read from
    `createdAt`, falling back to the legacy `dateTimeStr` field.
    """
    data = unwrap_value(raw)
    if not isinstance(data, dict):
        return None

    created_at = extract_string(data.get("createdAt"))
    if not created_at:
        created_at = extract_string(data.get("dateTimeStr"))
    duration = extract_string(data.get("duration"))
    if not created_at or not duration:
        return None

    description = extract_string(data.get("description")) or None
    return LogRecord(
        created_at=created_at,
        duration=duration,
        tags=tuple(extract_string_list(data.get("tags"))),
        description=description,
    )


def normalize_logs(raws: Iterable[Any]) -> tuple[tuple[LogRecord, ...], int]:
    """Normalise a batch, returning (valid records, number dropped)."""
    records = []
    dropped = 0
    for raw in raws or ():
        record = normalize_log(raw)
        if record is None:
            dropped += 1
            logger.debug("Dropping malformed log record: %r", raw)
            continue
        records.append(record)
    return tuple(records), dropped


def normalize_profile(user_id: str, raw: Any) -> Optional[Profile]:
    """Profile for a stored user document; None when there is no document."""
    data = unwrap_value(raw)
    if not isinstance(data, dict):
        return None
    name = extract_string(data.get("name")) or user_id
    friends = extract_string_list(data.get("friends"))
    return Profile(user_id=user_id, display_name=name, followee_ids=tuple(friends))
