"""
Structured, bounded log buffer.

Every entry is mirrored to stdlib logging (logger named after the
component) and kept in a ring buffer that drops the oldest entry on
overflow. Instances are owned by whoever creates them, so a feed, a
writer and each test can hold separate buffers.
"""
import csv
import functools
import io
import json
import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, Field

from practice_feed.config import settings

CSV_HEADER = ["Timestamp", "Level", "Message", "Error", "Component", "Function", "User ID"]


class LogLevel(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


_STDLIB_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.CRITICAL: logging.CRITICAL,
}


class ErrorContext(BaseModel):
    component: Optional[str] = None
    function: Optional[str] = None
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: dict[str, Any] = Field(default_factory=dict)


class LogEntry(BaseModel):
    level: LogLevel
    message: str
    error: Optional[BaseException] = None
    context: ErrorContext

    class Config:
        arbitrary_types_allowed = True

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error is not None else ""

    def to_dict(self) -> dict:
        return {
            "level": self.level.value,
            "message": self.message,
            "error": self.error_message or None,
            "context": self.context.model_dump(mode="json"),
        }


class ComponentContext:
    """Pre-fills the component name for a family of log calls."""

    def __init__(self, component: str) -> None:
        self.component = component

    def with_user(self, user_id: Optional[str]) -> ErrorContext:
        return ErrorContext(component=self.component, user_id=user_id or "anonymous")

    def with_function(self, function: str) -> ErrorContext:
        return ErrorContext(component=self.component, function=function)


class ErrorLog:
    def __init__(self, capacity: Optional[int] = None, mirror_to_logging: bool = True) -> None:
        self._capacity = capacity or settings.error_log_capacity
        self._entries: deque[LogEntry] = deque(maxlen=self._capacity)
        self._mirror = mirror_to_logging

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    # ── Recording ──────────────────────────────────────────────────────────

    def info(self, message: str, **context: Any) -> LogEntry:
        return self._record(LogLevel.INFO, message, None, context)

    def warning(self, message: str, **context: Any) -> LogEntry:
        return self._record(LogLevel.WARN, message, None, context)

    def error(self, message: str, error: BaseException, **context: Any) -> LogEntry:
        return self._record(LogLevel.ERROR, message, error, context)

    def critical(self, message: str, error: BaseException, **context: Any) -> LogEntry:
        return self._record(LogLevel.CRITICAL, message, error, context)

    def _record(
        self,
        level: LogLevel,
        message: str,
        error: Optional[BaseException],
        context: dict,
    ) -> LogEntry:
        ctx = context.pop("context", None)
        if ctx is None:
            ctx = ErrorContext(**context)
        elif context:
            ctx = ctx.model_copy(update=context)

        entry = LogEntry(level=level, message=message, error=error, context=ctx)
        self._entries.append(entry)

        if self._mirror:
            logger = logging.getLogger(f"practice_feed.{ctx.component or 'app'}")
            logger.log(
                _STDLIB_LEVELS[level],
                "%s%s",
                message,
                f": {error}" if error is not None else "",
                extra={"feed_context": ctx.model_dump(mode="json")},
            )
        return entry

    # ── Reading ────────────────────────────────────────────────────────────

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def filtered(
        self,
        level: Union[LogLevel, Iterable[LogLevel], None] = None,
        component: Optional[str] = None,
        min_timestamp: Optional[datetime] = None,
        max_timestamp: Optional[datetime] = None,
        search_text: Optional[str] = None,
    ) -> list[LogEntry]:
        """Entries matching every given criterion; no criteria returns all."""
        if isinstance(level, LogLevel):
            levels = {level}
        elif level is not None:
            levels = set(level)
        else:
            levels = None

        needle = search_text.lower() if search_text else None
        result = []
        for entry in self._entries:
            if levels is not None and entry.level not in levels:
                continue
            if component and entry.context.component != component:
                continue
            if min_timestamp and entry.context.timestamp < min_timestamp:
                continue
            if max_timestamp and entry.context.timestamp > max_timestamp:
                continue
            if needle and needle not in entry.message.lower() \
                    and needle not in entry.error_message.lower():
                continue
            result.append(entry)
        return result

    def export_json(self) -> str:
        return json.dumps([e.to_dict() for e in self._entries], indent=2)

    def export_csv(self) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for e in self._entries:
            writer.writerow([
                e.context.timestamp.isoformat(),
                e.level.value,
                e.message,
                e.error_message,
                e.context.component or "",
                e.context.function or "",
                e.context.user_id or "",
            ])
        return buf.getvalue().rstrip("\n")

    # ── Helpers ────────────────────────────────────────────────────────────

    def logged(self, component: Optional[str] = None):
        """
        Decorator for coroutines: failures are recorded as ERROR entries
        named after the wrapped function, then re-raised.
        """
        def decorator(fn):
            @functools.wraps(fn)
            async def wrapper(*args, **kwargs):
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    self.error(
                        f"Function failed: {fn.__name__}",
                        exc,
                        component=component,
                        function=fn.__name__,
                    )
                    raise
            return wrapper
        return decorator
