"""
FeedController — one viewer's live, filterable, paginated feed.

Connects the SubscriptionManager to a FeedStore: aggregates and errors
from the member subscriptions become dispatched actions, and the filter
and pagination operations a UI needs are exposed as plain methods.
"""
import logging
from typing import Optional

from practice_feed.config import settings
from practice_feed.error_log import ComponentContext, ErrorLog
from practice_feed.feed_state import (
    AggregateReceived,
    FeedClosed,
    FeedState,
    FeedStore,
    FeedView,
    FiltersCleared,
    LoadMoreRequested,
    LogAdded,
    ShowOnlyMineChanged,
    SubscriptionFailed,
    SubscriptionStarted,
    TagFilterChanged,
    UserFilterChanged,
    ViewerResolved,
)
from practice_feed.ports import LiveLogSource, ProfileStore, SnapshotReader
from practice_feed.recent_logs import fetch_recent_logs
from practice_feed.schemas import FeedEntry, LogRecord
from practice_feed.subscriptions import FeedSubscription, SubscriptionManager

logger = logging.getLogger(__name__)


class FeedController:
    def __init__(
        self,
        profile_store: ProfileStore,
        log_source: LiveLogSource,
        store: Optional[FeedStore] = None,
        error_log: Optional[ErrorLog] = None,
        realtime_enabled: Optional[bool] = None,
        snapshot_reader: Optional[SnapshotReader] = None,
    ) -> None:
        self.error_log = error_log or ErrorLog()
        self.store = store or FeedStore()
        self._profiles = profile_store
        self._reader = snapshot_reader or profile_store
        self._context = ComponentContext("controller")
        self._starts = 0
        self._manager = SubscriptionManager(profile_store, log_source, self.error_log)
        self._handle: Optional[FeedSubscription] = None
        self._realtime = settings.realtime_enabled if realtime_enabled is None else realtime_enabled

    @property
    def state(self) -> FeedState:
        return self.store.state

    def view(self) -> FeedView:
        return self.store.view()

    # ── Lifecycle ──────────────────────────────────────────────────────────

    async def open(self, viewer_id: str) -> FeedView:
        """
        Start the live feed for `viewer_id`.

        Failures to resolve the viewer's graph put the feed in the error
        state and are re-raised. With realtime delivery off the feed is
        read once instead (see refresh()).
        """
        self.close()
        self.store.dispatch(SubscriptionStarted(viewer_id))
        if not self._realtime:
            logger.info("Realtime feed disabled — reading feed for %s once", viewer_id)
            return await self.refresh()

        token = self._next_start()
        await self._subscribe(
            self._manager.start(viewer_id, self._on_update, self._on_error), token
        )
        return self.view()

    async def rebuild(self) -> FeedView:
        """Full-reset resubscription after the viewer's follow list changed."""
        viewer_id = self.state.viewer_id
        if viewer_id is None:
            raise RuntimeError("rebuild() called on a closed feed")
        self.store.dispatch(SubscriptionStarted(viewer_id))
        if not self._realtime:
            return await self.refresh()

        token = self._next_start()
        await self._subscribe(self._manager.restart(), token)
        return self.view()

    async def refresh(self) -> FeedView:
        """
        Read every member's logs once and replace the feed with the result.

        Live subscriptions, if any, keep running and overwrite the result
        on their next push.
        """
        viewer_id = self.state.viewer_id
        if viewer_id is None:
            raise RuntimeError("refresh() called on a closed feed")

        try:
            graph, entries = await fetch_recent_logs(self._profiles, self._reader, viewer_id)
        except Exception as exc:
            self.error_log.error(
                "Error reading recent logs",
                exc,
                context=self._context.with_user(viewer_id),
                function="refresh",
            )
            if self.state.viewer_id == viewer_id:
                self.store.dispatch(SubscriptionFailed(exc))
            raise

        if self.state.viewer_id != viewer_id:
            # closed or reopened while reading
            return self.view()
        self.store.dispatch(ViewerResolved(graph.viewer_display_name or viewer_id))
        self.store.dispatch(AggregateReceived(tuple(entries)))
        return self.view()

    def close(self) -> None:
        self._next_start()
        self._manager.stop()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self.state.viewer_id is not None:
            self.store.dispatch(FeedClosed())

    def _next_start(self) -> int:
        self._starts += 1
        return self._starts

    async def _subscribe(self, starting, token: int) -> None:
        try:
            handle = await starting
        except Exception as exc:
            if token == self._starts:
                self.store.dispatch(SubscriptionFailed(exc))
            raise
        if token != self._starts or handle.cancelled:
            # superseded by close() or a newer open() while the graph was resolving
            handle.cancel()
            return
        self._handle = handle
        self.store.dispatch(ViewerResolved(
            handle.graph.viewer_display_name or handle.graph.viewer_id
        ))

    def _on_update(self, entries: list[FeedEntry]) -> None:
        self.store.dispatch(AggregateReceived(tuple(entries)))

    def _on_error(self, error: BaseException) -> None:
        self.store.dispatch(SubscriptionFailed(error))

    def add_log(self, record: LogRecord) -> None:
        """Show the viewer's just-written log at the top until the next aggregate."""
        viewer_id = self.state.viewer_id
        if viewer_id is None:
            raise RuntimeError("add_log() called on a closed feed")
        author = self.state.viewer_display_name or viewer_id
        self.store.dispatch(LogAdded(FeedEntry.from_record(record, author=author, author_id=viewer_id)))

    # ── Filters & paging ───────────────────────────────────────────────────

    def set_tag_filter(self, value: str) -> None:
        self.store.dispatch(TagFilterChanged(value))

    def set_user_filter(self, value: str) -> None:
        self.store.dispatch(UserFilterChanged(value))

    def set_show_only_mine(self, value: bool) -> None:
        self.store.dispatch(ShowOnlyMineChanged(value))

    def clear_filters(self) -> None:
        self.store.dispatch(FiltersCleared())

    def load_more(self) -> bool:
        """Grow the visible slice by one page; False when nothing changed."""
        before = self.state.pagination.page
        return self.store.dispatch(LoadMoreRequested()).pagination.page != before
