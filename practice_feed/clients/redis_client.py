"""
Redis client wrapper.

Responsibilities:
  • User documents  — STRING (JSON) keyed by user:{user_id}
                       { name, friends, logs, tagAnalytics }
  • Update channel  — PUB/SUB channel user-updates:{user_id}
                       writers publish after every committed change

The live source subscribes to a member's channel first, then pushes the
full document, then re-reads and pushes the full document on every
notification. Consumers therefore always receive whole log arrays.
"""
import asyncio
import json
import logging
from typing import Any, Iterable, Optional

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from practice_feed.clients import documents
from practice_feed.config import settings
from practice_feed.errors import ConfigurationError, NotFoundError, ValidationError
from practice_feed.normalizer import extract_string, normalize_profile, unwrap_value
from practice_feed.ports import ErrorCallback, SnapshotCallback, Unsubscribe
from practice_feed.retry import retry_async
from practice_feed.schemas import Profile, RawSnapshot
from practice_feed.telemetry import tracer
from practice_feed.validation import validate_log_entry, validate_name

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise ConfigurationError("Redis not initialised — call init_redis() at startup")
    return _redis


def user_key(user_id: str) -> str:
    return f"{settings.user_key_prefix}{user_id}"


def update_channel(user_id: str) -> str:
    return f"{settings.update_channel_prefix}{user_id}"


async def read_user_document(r: aioredis.Redis, user_id: str) -> Optional[dict[str, Any]]:
    raw = await r.get(user_key(user_id))
    if raw is None:
        return None
    return json.loads(raw)


def _to_snapshot(doc: Optional[dict[str, Any]]) -> RawSnapshot:
    if doc is None:
        return RawSnapshot()
    logs = unwrap_value(doc.get("logs"))
    return RawSnapshot(
        display_name=extract_string(doc.get("name")),
        logs=logs if isinstance(logs, list) else [],
    )


# ─────────────────── Profiles + snapshots (one-shot) ─────────────────────

class RedisProfileStore:
    def __init__(self, redis: Optional[aioredis.Redis] = None) -> None:
        self._redis = redis

    async def read(self, user_id: str) -> Optional[Profile]:
        r = self._redis or get_redis()
        doc = await read_user_document(r, user_id)
        if doc is None:
            return None
        return normalize_profile(user_id, doc)

    async def read_snapshot(self, user_id: str) -> Optional[RawSnapshot]:
        r = self._redis or get_redis()
        doc = await read_user_document(r, user_id)
        if doc is None:
            return None
        return _to_snapshot(doc)


# ─────────────────────── Live member logs (pub/sub) ───────────────────────

class RedisLiveLogSource:
    def __init__(self, redis: Optional[aioredis.Redis] = None) -> None:
        self._redis = redis

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Start a listener task; must be called from a running event loop."""
        r = self._redis or get_redis()
        stopped = False

        def deliver(snapshot: RawSnapshot) -> None:
            if not stopped:
                on_snapshot(snapshot)

        def fail(exc: BaseException) -> None:
            if not stopped:
                on_error(exc)

        task = asyncio.get_running_loop().create_task(
            self._listen(r, user_id, deliver, fail),
            name=f"feed-listen:{user_id}",
        )

        def unsubscribe() -> None:
            nonlocal stopped
            stopped = True
            task.cancel()

        return unsubscribe

    async def _listen(
        self,
        r: aioredis.Redis,
        user_id: str,
        deliver: SnapshotCallback,
        fail: ErrorCallback,
    ) -> None:
        pubsub = r.pubsub()
        try:
            # subscribe before the first read so no change slips in between
            await pubsub.subscribe(update_channel(user_id))
            deliver(_to_snapshot(await read_user_document(r, user_id)))

            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                deliver(_to_snapshot(await read_user_document(r, user_id)))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Live logs for %s ended with error: %s", user_id, exc)
            fail(exc)
        finally:
            await pubsub.aclose()


# ─────────────────────── Writes (append-only logs) ────────────────────────

class RedisLogWriter:
    def __init__(self, redis: Optional[aioredis.Redis] = None) -> None:
        self._redis = redis

    @property
    def redis(self) -> aioredis.Redis:
        return self._redis or get_redis()

    async def create_user(self, user_id: str, name: str, friends: Iterable[str] = ()) -> None:
        """Create the user document unless it already exists."""
        result = validate_name(name)
        if not result.valid:
            raise ValidationError({"name": result.error})

        doc = documents.new_user_document(result.sanitized, friends)

        async def _create() -> None:
            created = await self.redis.set(user_key(user_id), json.dumps(doc), nx=True)
            if created:
                await self.redis.publish(update_channel(user_id), "create")

        await retry_async(_create, operation="create_user")
        logger.info("Created user %s (%s)", user_id, result.sanitized)

    async def append_log(self, owner_id: str, entry: dict[str, Any]) -> None:
        """Validate and append one log to the owner's document."""
        result = validate_log_entry(entry)
        if not result.valid:
            raise ValidationError(result.errors)

        with tracer.start_as_current_span("append_log") as span:
            span.set_attribute("owner.id", owner_id)
            await retry_async(
                lambda: self._update(owner_id, lambda doc: documents.append_log(doc, result.sanitized)),
                operation="append_log",
            )
        logger.debug("Appended log %s for %s", result.sanitized["createdAt"], owner_id)

    async def remove_log(self, owner_id: str, created_at: str) -> bool:
        removed = await retry_async(
            lambda: self._update(owner_id, lambda doc: documents.remove_log(doc, created_at)),
            operation="remove_log",
        )
        return removed

    async def add_friend(self, user_id: str, friend_id: str) -> None:
        await retry_async(
            lambda: self._update(user_id, lambda doc: documents.add_friend(doc, friend_id)),
            operation="add_friend",
        )

    async def _update(self, user_id: str, change) -> bool:
        """
        Apply `change(doc) -> doc | None` in a WATCH/MULTI transaction and
        notify subscribers. Returns False when `change` made no update.
        """
        key = user_key(user_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        raise NotFoundError(f"User document {user_id} does not exist")
                    updated = change(json.loads(raw))
                    if updated is None:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, json.dumps(updated))
                    pipe.publish(update_channel(user_id), "update")
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug("Concurrent update of %s — retrying transaction", key)
                    continue
