"""
Feed state machine.

One immutable FeedState holds everything a consumer renders (status,
aggregated entries, filters, pagination, last error). It only changes
through reduce(state, action); FeedStore owns the current state, applies
dispatched actions and notifies listeners.

  idle ──SubscriptionStarted──▶ loading ──AggregateReceived──▶ ready
                                   │                            │
                                   └──SubscriptionFailed──▶ error
  error ──AggregateReceived──▶ ready      any ──FeedClosed──▶ idle
"""
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Union

from practice_feed.config import settings
from practice_feed.filters import apply_filters
from practice_feed.pagination import first_page, next_page, paginate
from practice_feed.schemas import FeedEntry, FilterState, PaginationState

logger = logging.getLogger(__name__)


class FeedStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class FeedState:
    status: FeedStatus = FeedStatus.IDLE
    viewer_id: Optional[str] = None
    viewer_display_name: Optional[str] = None
    entries: tuple[FeedEntry, ...] = ()
    filters: FilterState = field(default_factory=FilterState)
    pagination: PaginationState = field(default_factory=PaginationState)
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class FeedView:
    """What a consumer renders: the visible slice plus counts."""
    status: FeedStatus
    visible: list[FeedEntry]
    filtered_count: int
    total_count: int
    has_more: bool
    page: int
    error: Optional[BaseException] = None


# ─────────────────────────── Actions ─────────────────────────────────────

@dataclass(frozen=True)
class SubscriptionStarted:
    viewer_id: str


@dataclass(frozen=True)
class ViewerResolved:
    display_name: Optional[str]


@dataclass(frozen=True)
class AggregateReceived:
    entries: tuple[FeedEntry, ...]


@dataclass(frozen=True)
class SubscriptionFailed:
    error: BaseException


@dataclass(frozen=True)
class LogAdded:
    entry: FeedEntry


@dataclass(frozen=True)
class TagFilterChanged:
    value: str


@dataclass(frozen=True)
class UserFilterChanged:
    value: str


@dataclass(frozen=True)
class ShowOnlyMineChanged:
    value: bool


@dataclass(frozen=True)
class FiltersCleared:
    pass


@dataclass(frozen=True)
class LoadMoreRequested:
    pass


@dataclass(frozen=True)
class FeedClosed:
    pass


Action = Union[
    SubscriptionStarted,
    ViewerResolved,
    AggregateReceived,
    SubscriptionFailed,
    LogAdded,
    TagFilterChanged,
    UserFilterChanged,
    ShowOnlyMineChanged,
    FiltersCleared,
    LoadMoreRequested,
    FeedClosed,
]


# ─────────────────────────── Reducer ─────────────────────────────────────

def filtered_entries(state: FeedState, by_author_id: Optional[bool] = None) -> list[FeedEntry]:
    return apply_filters(
        state.entries,
        state.filters,
        viewer_display_name=state.viewer_display_name,
        viewer_id=state.viewer_id,
        by_author_id=by_author_id,
    )


def _with_filters(state: FeedState, **changes) -> FeedState:
    return replace(state, filters=state.filters.model_copy(update=changes))


def reduce(state: FeedState, action: Action) -> FeedState:
    if isinstance(action, SubscriptionStarted):
        return replace(
            state,
            status=FeedStatus.LOADING,
            viewer_id=action.viewer_id,
            viewer_display_name=None,
            entries=(),
            pagination=first_page(state.pagination),
            error=None,
        )

    if isinstance(action, ViewerResolved):
        return replace(state, viewer_display_name=action.display_name)

    if isinstance(action, AggregateReceived):
        if state.status is FeedStatus.IDLE:
            return state
        # new data invalidates any deeper page the viewer had reached
        return replace(
            state,
            status=FeedStatus.READY,
            entries=tuple(action.entries),
            pagination=first_page(state.pagination),
            error=None,
        )

    if isinstance(action, SubscriptionFailed):
        if state.status is FeedStatus.IDLE:
            return state
        return replace(state, status=FeedStatus.ERROR, error=action.error)

    if isinstance(action, LogAdded):
        if state.status is FeedStatus.IDLE:
            return state
        return replace(state, entries=(action.entry, *state.entries))

    if isinstance(action, TagFilterChanged):
        return _with_filters(state, tag_filter=action.value)

    if isinstance(action, UserFilterChanged):
        return _with_filters(state, user_filter=action.value)

    if isinstance(action, ShowOnlyMineChanged):
        return _with_filters(state, show_only_mine=action.value)

    if isinstance(action, FiltersCleared):
        return replace(state, filters=FilterState())

    if isinstance(action, LoadMoreRequested):
        pagination = next_page(
            state.pagination,
            filtered_entries(state),
            loading=state.status is FeedStatus.LOADING,
        )
        if pagination is state.pagination:
            return state
        return replace(state, pagination=pagination)

    if isinstance(action, FeedClosed):
        return FeedState(
            filters=state.filters,
            pagination=first_page(state.pagination),
        )

    raise TypeError(f"Unknown feed action: {action!r}")


def derive_view(state: FeedState, by_author_id: Optional[bool] = None) -> FeedView:
    filtered = filtered_entries(state, by_author_id)
    visible, has_more = paginate(filtered, state.pagination.page, state.pagination.page_size)
    return FeedView(
        status=state.status,
        visible=visible,
        filtered_count=len(filtered),
        total_count=len(state.entries),
        has_more=has_more,
        page=state.pagination.page,
        error=state.error,
    )


# ─────────────────────────── Store ───────────────────────────────────────

Listener = Callable[[FeedState], None]


class FeedStore:
    def __init__(self, page_size: Optional[int] = None, state: Optional[FeedState] = None) -> None:
        if state is None:
            size = page_size or settings.feed_page_size
            state = FeedState(pagination=PaginationState(page=1, page_size=size))
        self._state = state
        self._listeners: list[Listener] = []

    @property
    def state(self) -> FeedState:
        return self._state

    def view(self) -> FeedView:
        return derive_view(self._state)

    def dispatch(self, action: Action) -> FeedState:
        new_state = reduce(self._state, action)
        if new_state is self._state:
            return new_state
        self._state = new_state
        logger.debug("%s → %s", type(action).__name__, new_state.status.value)
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
