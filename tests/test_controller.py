"""Tests for practice_feed/controller.py — full flow over the in-memory store."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_log
from practice_feed.controller import FeedController
from practice_feed.errors import ConfigurationError
from practice_feed.feed_state import FeedStatus, FeedStore
from practice_feed.schemas import LogRecord


def _controller(store, error_log, page_size=10, realtime=True):
    return FeedController(
        store, store,
        store=FeedStore(page_size=page_size),
        error_log=error_log,
        realtime_enabled=realtime,
    )


@pytest.fixture
def busy_store(store):
    """Alice follows Bob; 15 logs between them, 5 tagged guitar."""
    store.put_user("u1", name="Alice", friends=["u2"], logs=[
        make_log(f"2024-03-{day:02d}-10-00", tags=["guitar"] if day <= 5 else ["piano"])
        for day in range(1, 9)
    ])
    store.put_user("u2", name="Bob", logs=[
        make_log(f"2024-03-{day:02d}-18-00", tags=["drums"]) for day in range(1, 8)
    ])
    return store


class TestFeedController:
    @pytest.mark.asyncio
    async def test_open_shows_first_page(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        view = await controller.open("u1")

        assert view.status is FeedStatus.READY
        assert view.total_count == 15
        assert len(view.visible) == 10
        assert view.has_more
        assert controller.state.viewer_display_name == "Alice"

    @pytest.mark.asyncio
    async def test_load_more(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")

        assert controller.load_more()
        assert len(controller.view().visible) == 15
        assert not controller.load_more()

    @pytest.mark.asyncio
    async def test_live_update_resets_page(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")
        controller.load_more()

        await busy_store.append_log("u2", make_log("2024-03-20-07-00", tags=["drums"]))
        view = controller.view()
        assert view.page == 1
        assert view.total_count == 16
        assert view.visible[0].created_at == "2024-03-20-07-00"

    @pytest.mark.asyncio
    async def test_filters(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")

        controller.set_tag_filter("guitar")
        assert controller.view().filtered_count == 5

        controller.set_tag_filter("")
        controller.set_user_filter("bo")
        assert controller.view().filtered_count == 7

        controller.clear_filters()
        controller.set_show_only_mine(True)
        assert controller.view().filtered_count == 8

    @pytest.mark.asyncio
    async def test_member_error_surfaces_then_clears(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")

        busy_store.fail("u2", ConnectionError("stream dropped"))
        view = controller.view()
        assert view.status is FeedStatus.ERROR
        assert view.total_count == 15

        await busy_store.append_log("u1", make_log("2024-03-21-07-00"))
        assert controller.view().status is FeedStatus.READY
        assert controller.view().error is None

    @pytest.mark.asyncio
    async def test_graph_failure_puts_feed_in_error(self, store, error_log):
        profiles = MagicMock()
        profiles.read = AsyncMock(side_effect=ConfigurationError("no store"))
        controller = FeedController(profiles, store, error_log=error_log, realtime_enabled=True)

        with pytest.raises(ConfigurationError):
            await controller.open("u1")
        assert controller.state.status is FeedStatus.ERROR

    @pytest.mark.asyncio
    async def test_close_stops_delivery(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")
        controller.close()

        assert controller.state.status is FeedStatus.IDLE
        assert busy_store.subscriber_count("u1") == 0
        assert busy_store.subscriber_count("u2") == 0

        await busy_store.append_log("u2", make_log("2024-03-20-07-00"))
        assert controller.state.entries == ()

    @pytest.mark.asyncio
    async def test_reopen_for_another_viewer(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")
        view = await controller.open("u2")

        assert view.total_count == 7
        assert busy_store.subscriber_count("u1") == 0
        assert busy_store.subscriber_count("u2") == 1

    @pytest.mark.asyncio
    async def test_rebuild_after_follow(self, busy_store, error_log):
        busy_store.put_user("u3", name="Carol", logs=[make_log("2024-03-30-10-00")])
        controller = _controller(busy_store, error_log)
        await controller.open("u1")

        await busy_store.add_friend("u1", "u3")
        assert controller.view().total_count == 15

        view = await controller.rebuild()
        assert view.total_count == 16
        assert view.visible[0].author == "Carol"

    @pytest.mark.asyncio
    async def test_rebuild_closed_feed(self, store, error_log):
        controller = _controller(store, error_log)
        with pytest.raises(RuntimeError):
            await controller.rebuild()


class StaggeredProfiles:
    """Profile reads that take `delays[user_id]` seconds, optionally failing."""

    def __init__(self, store, delays, errors=None):
        self.store = store
        self.delays = delays
        self.errors = errors or {}

    async def read(self, user_id):
        await asyncio.sleep(self.delays.get(user_id, 0))
        if user_id in self.errors:
            raise self.errors[user_id]
        return await self.store.read(user_id)


class TestOverlappingOpens:
    @pytest.mark.asyncio
    async def test_slow_earlier_open_does_not_cancel_newer_feed(self, busy_store, error_log):
        profiles = StaggeredProfiles(busy_store, {"u1": 0.05})
        controller = FeedController(
            profiles, busy_store,
            store=FeedStore(page_size=10), error_log=error_log, realtime_enabled=True,
        )
        first = asyncio.create_task(controller.open("u1"))
        await asyncio.sleep(0)
        await controller.open("u2")
        await first

        assert controller.state.viewer_id == "u2"
        assert busy_store.subscriber_count("u1") == 0
        assert busy_store.subscriber_count("u2") == 1

        await busy_store.append_log("u2", make_log("2024-03-25-10-00", tags=["drums"]))
        view = controller.view()
        assert view.status is FeedStatus.READY
        assert view.total_count == 8
        assert view.visible[0].created_at == "2024-03-25-10-00"

    @pytest.mark.asyncio
    async def test_slow_earlier_failure_leaves_newer_feed_ready(self, busy_store, error_log):
        profiles = StaggeredProfiles(
            busy_store, {"u1": 0.05}, errors={"u1": ConfigurationError("no store")}
        )
        controller = FeedController(
            profiles, busy_store,
            store=FeedStore(page_size=10), error_log=error_log, realtime_enabled=True,
        )
        first = asyncio.create_task(controller.open("u1"))
        await asyncio.sleep(0)
        await controller.open("u2")

        with pytest.raises(ConfigurationError):
            await first
        assert controller.state.status is FeedStatus.READY
        assert busy_store.subscriber_count("u2") == 1

    @pytest.mark.asyncio
    async def test_close_while_resolving(self, busy_store, error_log):
        profiles = StaggeredProfiles(busy_store, {"u1": 0.05})
        controller = FeedController(profiles, busy_store, error_log=error_log, realtime_enabled=True)
        opening = asyncio.create_task(controller.open("u1"))
        await asyncio.sleep(0)
        controller.close()
        await opening

        assert controller.state.status is FeedStatus.IDLE
        assert busy_store.subscriber_count("u1") == 0
        assert busy_store.subscriber_count("u2") == 0


class TestOneShotFeed:
    @pytest.mark.asyncio
    async def test_realtime_disabled_reads_once(self, busy_store, error_log):
        controller = _controller(busy_store, error_log, realtime=False)
        view = await controller.open("u1")

        assert view.status is FeedStatus.READY
        assert view.total_count == 15
        assert controller.state.viewer_display_name == "Alice"
        assert busy_store.subscriber_count("u1") == 0
        assert busy_store.subscriber_count("u2") == 0

        await busy_store.append_log("u2", make_log("2024-03-20-07-00"))
        assert controller.view().total_count == 15

        view = await controller.refresh()
        assert view.total_count == 16
        assert view.visible[0].created_at == "2024-03-20-07-00"

    @pytest.mark.asyncio
    async def test_missing_member_is_skipped(self, busy_store, error_log):
        await busy_store.add_friend("u1", "ghost")
        controller = _controller(busy_store, error_log, realtime=False)
        view = await controller.open("u1")
        assert view.total_count == 15

    @pytest.mark.asyncio
    async def test_read_failure_puts_feed_in_error(self, busy_store, error_log):
        reader = MagicMock()
        reader.read_snapshot = AsyncMock(side_effect=ConfigurationError("no store"))
        controller = FeedController(
            busy_store, busy_store,
            error_log=error_log, realtime_enabled=False, snapshot_reader=reader,
        )
        with pytest.raises(ConfigurationError):
            await controller.open("u1")

        assert controller.state.status is FeedStatus.ERROR
        entries = error_log.filtered(component="controller")
        assert [e.context.function for e in entries] == ["refresh"]
        assert entries[0].context.user_id == "u1"

    @pytest.mark.asyncio
    async def test_refresh_closed_feed(self, store, error_log):
        controller = _controller(store, error_log)
        with pytest.raises(RuntimeError):
            await controller.refresh()


class TestAddLog:
    @pytest.mark.asyncio
    async def test_prepends_until_next_aggregate(self, busy_store, error_log):
        controller = _controller(busy_store, error_log)
        await controller.open("u1")

        controller.add_log(LogRecord(created_at="2024-03-22-08-00", duration="20", tags=("guitar",)))
        view = controller.view()
        assert view.total_count == 16
        assert (view.visible[0].author, view.visible[0].author_id) == ("Alice", "u1")

        await busy_store.append_log("u2", make_log("2024-03-20-07-00"))
        assert controller.view().total_count == 16
        assert controller.view().visible[0].created_at == "2024-03-20-07-00"

    def test_closed_feed(self, store, error_log):
        controller = _controller(store, error_log)
        with pytest.raises(RuntimeError):
            controller.add_log(LogRecord(created_at="2024-03-22-08-00", duration="20"))
