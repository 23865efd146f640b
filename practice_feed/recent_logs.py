"""
One-shot feed read.

Builds the same feed the live path does, from a single read of every
member's document: resolve the graph, read each member in member order,
normalise, aggregate. Used when realtime delivery is switched off and for
manual refreshes.
"""
import logging
from typing import Optional

from practice_feed.aggregator import aggregate
from practice_feed.normalizer import normalize_logs
from practice_feed.ports import ProfileStore, SnapshotReader
from practice_feed.retry import retry_async
from practice_feed.schemas import FeedEntry, SocialGraph, UserSnapshot
from practice_feed.social_graph import resolve_social_graph
from practice_feed.telemetry import MALFORMED_RECORDS_TOTAL, tracer

logger = logging.getLogger(__name__)


async def read_member_snapshot(reader: SnapshotReader, member_id: str) -> Optional[UserSnapshot]:
    """Latest logs of one member; None when the member has no document."""
    raw = await retry_async(
        lambda: reader.read_snapshot(member_id), operation="read_snapshot"
    )
    if raw is None:
        return None

    records, dropped = normalize_logs(raw.logs)
    if dropped:
        MALFORMED_RECORDS_TOTAL.inc(dropped)
        logger.warning("Dropped %d malformed log records for %s", dropped, member_id)
    return UserSnapshot(
        author_id=member_id,
        display_name=raw.display_name or member_id,
        logs=records,
    )


async def fetch_recent_logs(
    profiles: ProfileStore,
    reader: SnapshotReader,
    viewer_id: str,
) -> tuple[SocialGraph, list[FeedEntry]]:
    with tracer.start_as_current_span("fetch_recent_logs") as span:
        span.set_attribute("viewer.id", viewer_id)
        graph = await resolve_social_graph(profiles, viewer_id)

        snapshots = []
        for member_id in graph.members:
            snapshot = await read_member_snapshot(reader, member_id)
            if snapshot is not None:
                snapshots.append(snapshot)

        entries = aggregate(snapshots)
        span.set_attribute("feed.entries", len(entries))
        logger.debug("Read %d logs from %d members for %s", len(entries), len(snapshots), viewer_id)
        return graph, entries
