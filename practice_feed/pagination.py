"""
Prefix pagination over the filtered feed.

The visible slice is always the first page * page_size entries, so
"load more" grows the slice by one page and never skips ahead.
"""
from typing import Sequence, TypeVar

from practice_feed.schemas import PaginationState

T = TypeVar("T")


def paginate(filtered: Sequence[T], page: int, page_size: int) -> tuple[list[T], bool]:
    """Return (visible prefix, has_more)."""
    visible = list(filtered[: max(page, 1) * page_size])
    return visible, len(filtered) > len(visible)


def next_page(
    state: PaginationState,
    filtered: Sequence[T],
    loading: bool = False,
) -> PaginationState:
    """Advance one page; unchanged while loading or when nothing is left."""
    if loading:
        return state
    _, has_more = paginate(filtered, state.page, state.page_size)
    if not has_more:
        return state
    return state.model_copy(update={"page": state.page + 1})


def first_page(state: PaginationState) -> PaginationState:
    if state.page == 1:
        return state
    return state.model_copy(update={"page": 1})
