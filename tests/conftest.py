"""Shared fixtures for the feed engine tests."""

import pytest

from practice_feed.clients.memory_store import InMemoryDocumentStore
from practice_feed.error_log import ErrorLog
from practice_feed.schemas import FeedEntry

# 2025-01-01 00:00 UTC; anything unparseable sorts as this instant
NOW_MS = 1735689600000


def make_log(created_at, duration="30", tags=("guitar",), description="practice"):
    """Stored (native) log dict as a writer would append it."""
    log = {"createdAt": created_at, "duration": duration, "tags": list(tags)}
    if description is not None:
        log["description"] = description
    return log


def make_entry(
    created_at="2024-03-01-10-00",
    author="Alice",
    author_id="u1",
    tags=("guitar",),
    duration="30",
    description=None,
) -> FeedEntry:
    return FeedEntry(
        author=author,
        author_id=author_id,
        created_at=created_at,
        duration=duration,
        tags=tuple(tags),
        description=description,
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def error_log():
    return ErrorLog(capacity=50, mirror_to_logging=False)


@pytest.fixture
def two_user_store(store):
    """U1 (Alice) follows U2 (Bob); one log each, Bob's is newer."""
    store.put_user(
        "u1", name="Alice", friends=["u2"],
        logs=[make_log("2024-03-01-10-00", tags=["guitar"])],
    )
    store.put_user(
        "u2", name="Bob",
        logs=[make_log("2024-03-02-09-00", tags=["piano"])],
    )
    return store
