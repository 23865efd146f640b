#!/usr/bin/env python3
"""
Seed script — creates a realistic practice dataset in Redis.

Creates:
  • 8 users
  • A follow graph (each user follows 3 others)
  • 6 practice logs per user, spread over the last two weeks

Run after Redis is up:
  python scripts/seed_data.py --redis-host localhost

Then watch a feed:
  python -m practice_feed.main --viewer alice
"""
import argparse
import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone

from practice_feed.clients.redis_client import RedisLogWriter, close_redis, init_redis
from practice_feed.config import settings
from practice_feed.error_log import ErrorLog
from practice_feed.validation import build_log_document

logger = logging.getLogger("seed_data")
error_log = ErrorLog()

BASE_USERS = [
    ("alice", "Alice Chen"),
    ("bob", "Bob Martinez"),
    ("carol", "Carol Singh"),
    ("dave", "Dave Kim"),
    ("eve", "Eve Johnson"),
    ("frank", "Frank Williams"),
    ("grace", "Grace Li"),
    ("henry", "Henry Brown"),
]

SAMPLE_SESSIONS = [
    (["guitar", "scales"], "Major scales in all positions, metronome at 90."),
    (["guitar", "chords"], "Barre chord transitions, still buzzing on the B string."),
    (["piano", "warmup"], "Hanon 1-5, hands separately then together."),
    (["piano", "repertoire"], "First page of the Chopin nocturne, slow."),
    (["violin", "bowing"], "Long tones and string crossings."),
    (["drums", "rudiments"], "Paradiddles and flam taps, 4 bars each."),
    (["singing", "breathing"], "Breath support drills before choir."),
    (["theory", "ear-training"], "Interval recognition, 40 questions."),
    (["guitar", "improv"], "Pentatonic box 1 over a 12-bar blues backing."),
    (["piano", "sight-reading"], "Ten short pieces, no stopping."),
]


@error_log.logged(component="seed")
async def main(redis_host: str, redis_port: int) -> None:
    settings.redis_host = redis_host
    settings.redis_port = redis_port
    redis = await init_redis()
    writer = RedisLogWriter(redis)

    # ── Create users ─────────────────────────────────────────────────────
    logger.info("Creating users...")
    user_ids = [user_id for user_id, _ in BASE_USERS]
    for user_id, display_name in BASE_USERS:
        await writer.create_user(user_id, display_name)

    # ── Create follow graph ───────────────────────────────────────────────
    logger.info("Creating follow relationships...")
    for follower_id in user_ids:
        followees = random.sample([u for u in user_ids if u != follower_id], k=3)
        for followee_id in followees:
            await writer.add_friend(follower_id, followee_id)

    # ── Create practice logs ──────────────────────────────────────────────
    logger.info("Creating practice logs...")
    now = datetime.now(timezone.utc)
    count = 0
    for user_id in user_ids:
        for _ in range(6):
            tags, description = random.choice(SAMPLE_SESSIONS)
            created_at = now - timedelta(minutes=random.randint(0, 14 * 24 * 60))
            entry = build_log_document(
                duration=str(random.choice([15, 20, 30, 45, 60, 90])),
                description=description,
                tags=tags,
                created_at=created_at,
            )
            await writer.append_log(user_id, entry)
            count += 1
    logger.info("  ✓ %d logs created", count)

    await close_redis()

    logger.info("=" * 60)
    logger.info("Seed complete! Watch a feed with:")
    logger.info("  python -m practice_feed.main --viewer %s", user_ids[0])
    logger.info("  python -m practice_feed.main --viewer %s --tag guitar", user_ids[1])
    logger.info("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )
    parser = argparse.ArgumentParser(description="Seed the practice feed store")
    parser.add_argument("--redis-host", default="localhost", help="Redis host")
    parser.add_argument("--redis-port", type=int, default=6379, help="Redis port")
    args = parser.parse_args()
    asyncio.run(main(args.redis_host, args.redis_port))
