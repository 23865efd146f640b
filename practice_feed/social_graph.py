"""
Social graph resolution: which members' logs make up a viewer's feed.

The viewer's profile is read once, when the feed is opened. Changes to the
followee list mid-session only take effect when the caller rebuilds every
subscription (SubscriptionManager.restart).
"""
import logging

from practice_feed.ports import ProfileStore
from practice_feed.retry import retry_async
from practice_feed.schemas import SocialGraph
from practice_feed.telemetry import tracer

logger = logging.getLogger(__name__)


async def resolve_social_graph(store: ProfileStore, viewer_id: str) -> SocialGraph:
    """
    {viewer} ∪ followees(viewer), viewer first, duplicates removed.

    A viewer without a profile resolves to an empty member set so the feed
    reports zero logs instead of failing.
    """
    with tracer.start_as_current_span("resolve_social_graph") as span:
        span.set_attribute("viewer.id", viewer_id)

        profile = await retry_async(
            lambda: store.read(viewer_id), operation="read_profile"
        )
        if profile is None:
            logger.info("No profile for viewer %s — empty feed", viewer_id)
            return SocialGraph(viewer_id=viewer_id)

        members = list(dict.fromkeys([viewer_id, *profile.followee_ids]))
        span.set_attribute("graph.members", len(members))
        logger.debug("Viewer %s resolves to %d members", viewer_id, len(members))
        return SocialGraph(
            viewer_id=viewer_id,
            viewer_display_name=profile.display_name,
            members=tuple(members),
        )
