"""
Chronological ordering of feed entries, newest first.

Timestamp tokens are "YYYY-MM-DD-HH-mm" strings in UTC. A token with fewer
than five numeric dash-separated parts (or an impossible date) cannot be
placed in time and is treated as "now", so malformed entries sort as if
they were the newest ones.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

TOKEN_FORMAT = "%Y-%m-%d-%H-%M"


class _Timestamped(Protocol):
    created_at: str


T = TypeVar("T", bound=_Timestamped)


def parse_timestamp_token(token: str) -> Optional[datetime]:
    parts = token.split("-") if isinstance(token, str) else []
    if len(parts) < 5:
        return None
    try:
        year, month, day, hour, minute = (int(p) for p in parts[:5])
        return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    except ValueError:
        return None


def format_timestamp_token(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TOKEN_FORMAT)


def _now_ms() -> int:
    return int(time.time() * 1000)


def timestamp_instant(token: str, now_ms: Optional[int] = None) -> int:
    """Epoch milliseconds for `token`; unparseable tokens map to now."""
    parsed = parse_timestamp_token(token)
    if parsed is None:
        logger.debug("Unparseable timestamp token %r sorted as now", token)
        return _now_ms() if now_ms is None else now_ms
    return int(parsed.timestamp() * 1000)


def compare_newest_first(a: str, b: str, now_ms: Optional[int] = None) -> int:
    """Negative when `a` is newer than `b`, i.e. instant(b) - instant(a)."""
    now_ms = _now_ms() if now_ms is None else now_ms
    return timestamp_instant(b, now_ms) - timestamp_instant(a, now_ms)


def sort_newest_first(entries: Iterable[T], now_ms: Optional[int] = None) -> list[T]:
    # sorted() is stable, so equal instants keep their input order
    now_ms = _now_ms() if now_ms is None else now_ms
    return sorted(entries, key=lambda e: -timestamp_instant(e.created_at, now_ms))
