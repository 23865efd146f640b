"""Tests for practice_feed/filters.py"""

from conftest import make_entry
from practice_feed.filters import (
    apply_filters,
    build_filter_chain,
    filter_by_mine,
    filter_by_tags,
    filter_by_user,
    parse_tag_terms,
)
from practice_feed.schemas import FilterState


def _guitar_feed():
    return [
        make_entry("2024-03-03-10-00", author="Alice", author_id="u1", tags=["Guitar", "scales"]),
        make_entry("2024-03-02-10-00", author="Bob", author_id="u2", tags=["piano"]),
        make_entry("2024-03-01-10-00", author="Alice", author_id="u1", tags=["electric-guitar"]),
    ]


class TestParseTagTerms:
    def test_splits_trims_lowercases(self):
        assert parse_tag_terms(" Guitar , PIANO") == ["guitar", "piano"]

    def test_trailing_comma_does_not_match_everything(self):
        assert parse_tag_terms("guitar,,  ,") == ["guitar"]
        assert parse_tag_terms("") == []


class TestFilterByTags:
    def test_substring_case_insensitive(self):
        assert filter_by_tags(make_entry(tags=["Electric-Guitar"]), ["guitar"])

    def test_any_term_matches(self):
        assert filter_by_tags(make_entry(tags=["piano"]), ["guitar", "pia"])

    def test_no_match(self):
        assert not filter_by_tags(make_entry(tags=["piano"]), ["guitar"])

    def test_entry_without_tags(self):
        assert not filter_by_tags(make_entry(tags=[]), ["guitar"])


class TestFilterByUser:
    def test_substring_case_insensitive(self):
        assert filter_by_user(make_entry(author="Alice Chen"), "chen")

    def test_no_match(self):
        assert not filter_by_user(make_entry(author="Alice"), "bob")


class TestFilterByMine:
    def test_exact_name_match(self):
        assert filter_by_mine(make_entry(author="Alice"), "Alice")

    def test_name_match_is_case_sensitive(self):
        assert not filter_by_mine(make_entry(author="alice"), "Alice")

    def test_unknown_viewer_matches_nothing(self):
        assert not filter_by_mine(make_entry(author="Alice"), None)

    def test_shared_names_both_match(self):
        assert filter_by_mine(make_entry(author="Alice", author_id="u9"), "Alice", viewer_id="u1")

    def test_by_author_id(self):
        entry = make_entry(author="Alice", author_id="u9")
        assert not filter_by_mine(entry, "Alice", viewer_id="u1", by_author_id=True)
        assert filter_by_mine(entry, "Someone", viewer_id="u9", by_author_id=True)


class TestApplyFilters:
    def test_guitar_tag_filter(self):
        result = apply_filters(_guitar_feed(), FilterState(tag_filter="guitar"))
        assert len(result) == 2
        assert all(e.author == "Alice" for e in result)

    def test_no_filters_keeps_everything(self):
        feed = _guitar_feed()
        assert apply_filters(feed, FilterState()) == feed

    def test_only_empty_terms_leaves_filter_inactive(self):
        feed = _guitar_feed()
        assert apply_filters(feed, FilterState(tag_filter=" , ")) == feed

    def test_trailing_comma_keeps_tag_filter_narrow(self):
        result = apply_filters(_guitar_feed(), FilterState(tag_filter="guitar,"))
        assert [e.author for e in result] == ["Alice", "Alice"]

    def test_preserves_order(self):
        result = apply_filters(_guitar_feed(), FilterState(tag_filter="guitar"))
        assert [e.created_at for e in result] == ["2024-03-03-10-00", "2024-03-01-10-00"]

    def test_result_is_subset(self):
        feed = _guitar_feed()
        state = FilterState(tag_filter="piano,scales", user_filter="a")
        result = apply_filters(feed, state)
        assert all(e in feed for e in result)

    def test_mine_only(self):
        result = apply_filters(_guitar_feed(), FilterState(show_only_mine=True), viewer_display_name="Bob")
        assert [e.author for e in result] == ["Bob"]

    def test_filters_compose_with_and(self):
        state = FilterState(tag_filter="guitar", user_filter="bob")
        assert apply_filters(_guitar_feed(), state) == []

    def test_order_of_application_does_not_matter(self):
        feed = _guitar_feed()
        by_tag = [e for e in feed if build_filter_chain(FilterState(tag_filter="guitar"))(e)]
        tag_then_user = [e for e in by_tag if build_filter_chain(FilterState(user_filter="ali"))(e)]
        by_user = [e for e in feed if build_filter_chain(FilterState(user_filter="ali"))(e)]
        user_then_tag = [e for e in by_user if build_filter_chain(FilterState(tag_filter="guitar"))(e)]
        assert tag_then_user == user_then_tag
