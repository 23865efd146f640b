"""
Validation and sanitisation for new log entries (write path).

Each validator returns a FieldResult; validate_log_entry collects the
per-field errors and, when everything passes, the sanitised values.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from practice_feed.errors import ValidationError
from practice_feed.ordering import format_timestamp_token, parse_timestamp_token

DESCRIPTION_MIN_LENGTH = 1
DESCRIPTION_MAX_LENGTH = 1000
DURATION_MIN = 1
DURATION_MAX = 1440  # 24 hours in minutes
TAG_MAX_LENGTH = 30
MAX_TAGS = 5
NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 50

_HTML_TAG = re.compile(r"<[^>]*>")
_UNSAFE_CHARS = re.compile(r"[\"'\\]")
_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass
class FieldResult:
    valid: bool
    sanitized: Any
    error: Optional[str] = None


@dataclass
class EntryResult:
    valid: bool
    errors: dict[str, str] = field(default_factory=dict)
    sanitized: Optional[dict[str, Any]] = None


def sanitize_text(text: Optional[str]) -> str:
    """Strip HTML tags, quotes and backslashes, then surrounding whitespace."""
    if not text:
        return ""
    text = _HTML_TAG.sub("", text)
    text = _UNSAFE_CHARS.sub("", text)
    return text.strip()


def validate_description(description: Optional[str]) -> FieldResult:
    sanitized = sanitize_text(description)
    if len(sanitized) < DESCRIPTION_MIN_LENGTH:
        return FieldResult(False, sanitized,
                           f"Description must be at least {DESCRIPTION_MIN_LENGTH} character")
    if len(sanitized) > DESCRIPTION_MAX_LENGTH:
        return FieldResult(False, sanitized,
                           f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return FieldResult(True, sanitized)


def validate_duration(duration: Any) -> FieldResult:
    sanitized = _NON_DIGITS.sub("", str(duration if duration is not None else ""))
    if not sanitized:
        return FieldResult(False, "", "Duration is required")

    minutes = int(sanitized)
    if minutes < DURATION_MIN:
        return FieldResult(False, sanitized, f"Duration must be at least {DURATION_MIN} minute")
    if minutes > DURATION_MAX:
        return FieldResult(False, sanitized,
                           f"Duration cannot exceed {DURATION_MAX} minutes (24 hours)")
    return FieldResult(True, sanitized)


def validate_tags(tags: Optional[Iterable[str]]) -> FieldResult:
    tags = list(tags or [])
    if not tags:
        return FieldResult(False, [], "At least one tag is required")
    if len(tags) > MAX_TAGS:
        return FieldResult(False, tags[:MAX_TAGS], f"Cannot have more than {MAX_TAGS} tags")

    sanitized = [sanitize_text(tag)[:TAG_MAX_LENGTH] for tag in tags]
    return FieldResult(True, sanitized)


def validate_name(name: Optional[str]) -> FieldResult:
    sanitized = sanitize_text(name)
    if len(sanitized) < NAME_MIN_LENGTH:
        return FieldResult(False, sanitized, f"Name must be at least {NAME_MIN_LENGTH} character")
    if len(sanitized) > NAME_MAX_LENGTH:
        return FieldResult(False, sanitized, f"Name cannot exceed {NAME_MAX_LENGTH} characters")
    return FieldResult(True, sanitized)


def validate_timestamp_token(token: Optional[str]) -> FieldResult:
    if not token:
        return FieldResult(False, "", "Date and time are required")
    if parse_timestamp_token(token) is None:
        return FieldResult(False, token, "Date and time must look like YYYY-MM-DD-HH-mm")
    return FieldResult(True, token)


def validate_log_entry(entry: dict[str, Any]) -> EntryResult:
    results = {
        "createdAt": validate_timestamp_token(entry.get("createdAt")),
        "duration": validate_duration(entry.get("duration")),
        "description": validate_description(entry.get("description")),
        "tags": validate_tags(entry.get("tags")),
    }
    errors = {name: r.error for name, r in results.items() if not r.valid}
    if errors:
        return EntryResult(False, errors)
    return EntryResult(True, {}, {name: r.sanitized for name, r in results.items()})


def build_log_document(
    duration: Any,
    description: str,
    tags: Iterable[str],
    created_at: Optional[datetime] = None,
) -> dict[str, Any]:
    """
    Validated log dict ready to append to a user document.

    Raises ValidationError listing every invalid field.
    """
    moment = created_at or datetime.now(timezone.utc)
    result = validate_log_entry({
        "createdAt": format_timestamp_token(moment),
        "duration": duration,
        "description": description,
        "tags": list(tags),
    })
    if not result.valid:
        raise ValidationError(result.errors)
    return result.sanitized
