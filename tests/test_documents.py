"""Tests for practice_feed/tag_analytics.py and practice_feed/clients/documents.py"""

from conftest import make_log
from practice_feed.clients import documents
from practice_feed.tag_analytics import (
    calculate_tag_analytics,
    decrement_tag_analytics,
    update_tag_analytics,
)


class TestTagAnalytics:
    def test_update_lowercases(self):
        assert update_tag_analytics({"guitar": 1}, ["Guitar", "Scales"]) == {"guitar": 2, "scales": 1}

    def test_update_from_nothing(self):
        assert update_tag_analytics(None, ["piano"]) == {"piano": 1}

    def test_decrement_floors_at_zero(self):
        assert decrement_tag_analytics({"guitar": 1}, ["guitar", "guitar"]) == {"guitar": 0}

    def test_decrement_ignores_unknown(self):
        assert decrement_tag_analytics({"guitar": 2}, ["piano"]) == {"guitar": 2}

    def test_decrement_empty(self):
        assert decrement_tag_analytics({}, ["piano"]) == {}

    def test_calculate(self):
        logs = [{"tags": ["Guitar"]}, {"tags": ["guitar", "piano"]}, {}]
        assert calculate_tag_analytics(logs) == {"guitar": 2, "piano": 1}

    def test_update_does_not_mutate(self):
        current = {"guitar": 1}
        update_tag_analytics(current, ["guitar"])
        assert current == {"guitar": 1}


class TestDocuments:
    def test_new_user_document(self):
        doc = documents.new_user_document("Alice", ["u2"])
        assert doc == {"name": "Alice", "friends": ["u2"], "logs": [], "tagAnalytics": {}}

    def test_append_log_is_append_only(self):
        doc = documents.new_user_document("Alice")
        first = documents.append_log(doc, make_log("2024-03-01-10-00", tags=["Guitar"]))
        second = documents.append_log(first, make_log("2024-03-02-10-00", tags=["guitar"]))

        assert doc["logs"] == []
        assert [log["createdAt"] for log in second["logs"]] == ["2024-03-01-10-00", "2024-03-02-10-00"]
        assert second["tagAnalytics"] == {"guitar": 2}

    def test_remove_log(self):
        doc = documents.append_log(
            documents.new_user_document("Alice"), make_log("2024-03-01-10-00", tags=["piano"])
        )
        updated = documents.remove_log(doc, "2024-03-01-10-00")
        assert updated["logs"] == []
        assert updated["tagAnalytics"] == {"piano": 0}

    def test_remove_missing_log(self):
        assert documents.remove_log(documents.new_user_document("Alice"), "2024-03-01-10-00") is None

    def test_add_friend_once(self):
        doc = documents.add_friend(documents.new_user_document("Alice"), "u2")
        doc = documents.add_friend(doc, "u2")
        assert doc["friends"] == ["u2"]
