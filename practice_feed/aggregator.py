"""Recombine cached member snapshots into one feed, newest first."""
from typing import Iterable, Optional

from practice_feed.ordering import sort_newest_first
from practice_feed.schemas import FeedEntry, UserSnapshot
from practice_feed.telemetry import AGGREGATION_LATENCY


def aggregate(snapshots: Iterable[UserSnapshot], now_ms: Optional[int] = None) -> list[FeedEntry]:
    """
    Concatenate every snapshot's logs (tagged with their author) in snapshot
    order and sort by creation time. Entries with the same timestamp keep
    that concatenation order.
    """
    with AGGREGATION_LATENCY.time():
        combined = [
            FeedEntry.from_record(record, author=snap.display_name, author_id=snap.author_id)
            for snap in snapshots
            for record in snap.logs
        ]
        return sort_newest_first(combined, now_ms)
