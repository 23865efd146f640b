"""
Per-member live subscriptions for one viewer's feed.

  1. Resolve the viewer's social graph once (viewer + followees).
  2. Open one live subscription per member.
  3. On every push, overwrite that member's cached snapshot and recombine
     all cached snapshots into a fresh feed for the consumer.

Key design decisions:
  • No barrier — the first aggregate is emitted as soon as the first
    member reports, and grows as the others arrive.
  • Wholesale replace — sources deliver the member's full log array on
    every change, so a push overwrites the cache slot instead of merging.
    A source that sends deltas would need a merging cache instead.
  • Partial degradation — one member's error is reported via on_error,
    sibling subscriptions keep running.
"""
import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from practice_feed.aggregator import aggregate
from practice_feed.error_log import ComponentContext, ErrorLog
from practice_feed.errors import MalformedDataError
from practice_feed.normalizer import normalize_logs
from practice_feed.ports import ErrorCallback, LiveLogSource, ProfileStore, Unsubscribe
from practice_feed.schemas import FeedEntry, RawSnapshot, SocialGraph, UserSnapshot
from practice_feed.social_graph import resolve_social_graph
from practice_feed.telemetry import (
    ACTIVE_SUBSCRIPTIONS,
    MALFORMED_RECORDS_TOTAL,
    SNAPSHOTS_RECEIVED_TOTAL,
    SUBSCRIPTION_ERRORS_TOTAL,
    tracer,
)

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[list[FeedEntry]], None]


class FeedSubscription:
    """
    Composite cancel handle for every member subscription of one feed.

    Cancelling is idempotent and safe from inside a subscription callback:
    the handle is marked cancelled before any source is torn down, and
    every callback checks the mark before touching the cache.
    """

    def __init__(self, graph: SocialGraph) -> None:
        self.graph = graph
        self._unsubscribes: list[Unsubscribe] = []
        self._cache: dict[str, UserSnapshot] = {}
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active_count(self) -> int:
        return len(self._unsubscribes)

    def snapshots(self) -> list[UserSnapshot]:
        """Cached snapshots in member order (viewer first)."""
        return [self._cache[m] for m in self.graph.members if m in self._cache]

    def store(self, snapshot: UserSnapshot) -> None:
        if not self._cancelled:
            self._cache[snapshot.author_id] = snapshot

    def attach(self, unsubscribe: Unsubscribe) -> None:
        if self._cancelled:
            # cancelled while this member was being subscribed
            unsubscribe()
            return
        self._unsubscribes.append(unsubscribe)
        ACTIVE_SUBSCRIPTIONS.inc()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        unsubscribes, self._unsubscribes = self._unsubscribes, []
        for unsubscribe in unsubscribes:
            try:
                unsubscribe()
            except Exception as exc:
                logger.warning(
                    "Unsubscribe failed for viewer %s: %s", self.graph.viewer_id, exc
                )
        ACTIVE_SUBSCRIPTIONS.dec(len(unsubscribes))
        self._cache.clear()
        logger.debug(
            "Cancelled %d member subscriptions for viewer %s",
            len(unsubscribes), self.graph.viewer_id,
        )

    __call__ = cancel


class SubscriptionManager:
    def __init__(
        self,
        profile_store: ProfileStore,
        log_source: LiveLogSource,
        error_log: Optional[ErrorLog] = None,
    ) -> None:
        self._profiles = profile_store
        self._source = log_source
        self._error_log = error_log or ErrorLog()
        self._context = ComponentContext("subscriptions")
        self._current: Optional[FeedSubscription] = None
        self._last_start: Optional[tuple[str, UpdateCallback, ErrorCallback]] = None
        self._generation = 0

    @property
    def current(self) -> Optional[FeedSubscription]:
        return self._current

    async def start(
        self,
        viewer_id: str,
        on_update: UpdateCallback,
        on_error: ErrorCallback,
    ) -> FeedSubscription:
        """
        Subscribe to every member of the viewer's graph.

        Replaces (and cancels) any feed this manager already runs. Errors
        resolving the graph are logged and raised to the caller.

        If another start() begins while this one is resolving the graph,
        the newer call wins: this one returns an already-cancelled handle
        and leaves the current feed alone.
        """
        self._last_start = (viewer_id, on_update, on_error)
        self._generation += 1
        generation = self._generation

        with tracer.start_as_current_span("start_feed_subscriptions") as span:
            span.set_attribute("viewer.id", viewer_id)
            try:
                graph = await resolve_social_graph(self._profiles, viewer_id)
            except Exception as exc:
                self._error_log.error(
                    "Error setting up feed subscriptions",
                    exc,
                    context=self._context.with_user(viewer_id),
                    function="start",
                )
                raise

            if generation != self._generation:
                logger.debug("Superseded feed start for viewer %s", viewer_id)
                stale = FeedSubscription(graph)
                stale.cancel()
                return stale

            if self._current is not None:
                self._current.cancel()
            handle = FeedSubscription(graph)
            self._current = handle

            if not graph.members:
                on_update([])
                return handle

            for member_id in graph.members:
                if handle.cancelled:
                    break
                on_snapshot, on_member_error = self._member_callbacks(
                    handle, member_id, on_update, on_error
                )
                handle.attach(self._source.subscribe(member_id, on_snapshot, on_member_error))

            span.set_attribute("subscriptions.opened", handle.active_count)
            logger.info(
                "Viewer %s subscribed to %d members", viewer_id, handle.active_count
            )
            return handle

    async def restart(self) -> FeedSubscription:
        """Tear down every member subscription and rebuild from a fresh graph."""
        if self._last_start is None:
            raise RuntimeError("restart() called before start()")
        if self._current is not None:
            self._current.cancel()
        return await self.start(*self._last_start)

    def stop(self) -> None:
        """Cancel the current feed and any start() still resolving its graph."""
        self._generation += 1
        if self._current is not None:
            self._current.cancel()

    def _member_callbacks(
        self,
        handle: FeedSubscription,
        member_id: str,
        on_update: UpdateCallback,
        on_error: ErrorCallback,
    ) -> tuple[Callable[[RawSnapshot], None], ErrorCallback]:

        def on_member_error(exc: BaseException) -> None:
            if handle.cancelled:
                return
            SUBSCRIPTION_ERRORS_TOTAL.inc()
            self._error_log.error(
                "Error in member log subscription",
                exc,
                context=self._context.with_user(member_id),
                function="on_member_error",
            )
            on_error(exc)

        def on_snapshot(raw: RawSnapshot) -> None:
            if handle.cancelled:
                return
            SNAPSHOTS_RECEIVED_TOTAL.inc()
            try:
                if not isinstance(raw, RawSnapshot):
                    raw = RawSnapshot.model_validate(raw)
            except PydanticValidationError as exc:
                on_member_error(MalformedDataError(f"Unreadable snapshot for {member_id}: {exc}"))
                return

            records, dropped = normalize_logs(raw.logs)
            if dropped:
                MALFORMED_RECORDS_TOTAL.inc(dropped)
                self._error_log.warning(
                    f"Dropped {dropped} malformed log records",
                    context=self._context.with_user(member_id),
                    function="on_snapshot",
                )

            handle.store(UserSnapshot(
                author_id=member_id,
                display_name=raw.display_name or member_id,
                logs=records,
            ))
            try:
                on_update(aggregate(handle.snapshots()))
            except Exception as exc:
                self._error_log.error(
                    "Error processing member logs update",
                    exc,
                    context=self._context.with_user(member_id),
                    function="on_snapshot",
                )
                on_error(exc)

        return on_snapshot, on_member_error
