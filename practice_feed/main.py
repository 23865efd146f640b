"""
Feed watcher — follows one viewer's live practice feed from Redis.

Startup sequence:
  1. Configure logging (and OTel tracing if --trace)
  2. Connect to Redis
  3. Open the viewer's feed (graph resolution + one subscription per member)
  4. Log the visible slice every time the feed changes
     (--once reads every member a single time and exits)

Run:
  python -m practice_feed.main --viewer <user_id> [--tag guitar] [--mine]
"""
import argparse
import asyncio
import logging
import signal

from practice_feed.clients.redis_client import (
    RedisLiveLogSource,
    RedisProfileStore,
    close_redis,
    init_redis,
)
from practice_feed.config import settings
from practice_feed.controller import FeedController
from practice_feed.error_log import ErrorLog
from practice_feed.feed_state import FeedState, derive_view
from practice_feed.telemetry import setup_tracing

logger = logging.getLogger(__name__)

error_log = ErrorLog()


def render(state: FeedState) -> None:
    view = derive_view(state)
    logger.info(
        "[%s] showing %d of %d logs (page %d%s)%s",
        view.status.value,
        len(view.visible),
        view.filtered_count,
        view.page,
        ", more available" if view.has_more else "",
        f" — error: {view.error}" if view.error else "",
    )
    for entry in view.visible:
        logger.info(
            "  %s  %-20s %4s min  [%s]  %s",
            entry.created_at,
            entry.author,
            entry.duration,
            ", ".join(entry.tags),
            entry.description or "",
        )


@error_log.logged(component="watcher")
async def main(args: argparse.Namespace) -> None:
    if args.trace:
        setup_tracing()

    redis = await init_redis()
    controller = FeedController(
        RedisProfileStore(redis),
        RedisLiveLogSource(redis),
        error_log=error_log,
        realtime_enabled=False if args.once else None,
    )
    controller.store.subscribe(render)

    if args.tag:
        controller.set_tag_filter(args.tag)
    if args.user:
        controller.set_user_filter(args.user)
    if args.mine:
        controller.set_show_only_mine(True)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await controller.open(args.viewer)
        if args.once:
            return
        logger.info("Watching feed for %s — Ctrl+C to stop", args.viewer)
        await stop.wait()
    finally:
        controller.close()
        await close_redis()
        logger.info("Feed watcher stopped")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch a viewer's live practice feed")
    parser.add_argument("--viewer", required=True, help="User id whose feed to open")
    parser.add_argument("--tag", default="", help="Comma-separated tag filter")
    parser.add_argument("--user", default="", help="Author name substring filter")
    parser.add_argument("--mine", action="store_true", help="Only the viewer's own logs")
    parser.add_argument("--once", action="store_true", help="Read the feed once and exit")
    parser.add_argument("--trace", action="store_true", help="Export OTel traces")
    return parser.parse_args()


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    asyncio.run(main(parse_args()))
