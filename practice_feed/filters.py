"""Filter predicates for feed entries — tags, author name, mine-only."""
from typing import Callable, Iterable, Optional

from practice_feed.config import settings
from practice_feed.schemas import FeedEntry, FilterState


def parse_tag_terms(tag_filter: str) -> list[str]:
    """Comma-separated filter text → trimmed, lower-cased, non-empty terms."""
    terms = (t.strip().lower() for t in tag_filter.split(","))
    # an empty term is dropped, not treated as match-all: "guitar," means guitar
    return [t for t in terms if t]


def filter_by_tags(entry: FeedEntry, terms: list[str]) -> bool:
    """True if any term is a case-insensitive substring of any tag."""
    tags = [tag.lower() for tag in entry.tags]
    return any(term in tag for term in terms for tag in tags)


def filter_by_user(entry: FeedEntry, user_filter: str) -> bool:
    """True if the filter is a case-insensitive substring of the author name."""
    return user_filter.lower() in entry.author.lower()


def filter_by_mine(
    entry: FeedEntry,
    viewer_display_name: Optional[str],
    viewer_id: Optional[str] = None,
    by_author_id: bool = False,
) -> bool:
    """
    True if the entry belongs to the viewer.

    Matches the display name exactly (case-sensitive) unless by_author_id
    is set; two users sharing a name both match under name matching.
    """
    if by_author_id:
        return viewer_id is not None and entry.author_id == viewer_id
    return viewer_display_name is not None and entry.author == viewer_display_name


def build_filter_chain(
    state: FilterState,
    viewer_display_name: Optional[str] = None,
    viewer_id: Optional[str] = None,
    by_author_id: Optional[bool] = None,
) -> Callable[[FeedEntry], bool]:
    """
    Combine all active filters into a single callable.

    Returns a function that ANDs all active predicates together.
    """
    predicates = []

    if state.tag_filter:
        terms = parse_tag_terms(state.tag_filter)
        if terms:
            predicates.append(lambda entry, t=terms: filter_by_tags(entry, t))

    if state.user_filter:
        user_filter = state.user_filter
        predicates.append(lambda entry, u=user_filter: filter_by_user(entry, u))

    if state.show_only_mine:
        by_id = settings.mine_only_by_author_id if by_author_id is None else by_author_id
        predicates.append(
            lambda entry: filter_by_mine(entry, viewer_display_name, viewer_id, by_id)
        )

    if not predicates:
        return lambda entry: True

    def combined(entry: FeedEntry) -> bool:
        return all(p(entry) for p in predicates)

    return combined


def apply_filters(
    feed: Iterable[FeedEntry],
    state: FilterState,
    viewer_display_name: Optional[str] = None,
    viewer_id: Optional[str] = None,
    by_author_id: Optional[bool] = None,
) -> list[FeedEntry]:
    """Entries of the full aggregated feed passing every active filter."""
    keep = build_filter_chain(state, viewer_display_name, viewer_id, by_author_id)
    return [entry for entry in feed if keep(entry)]
