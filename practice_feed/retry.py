"""
Retry policy for one-shot store reads and writes.

Transient failures (network, timeout, offline, failed fetch) are retried
with exponential backoff: base_delay * 2**retry. Anything else, and
ConfigurationError in particular, is raised on the first failure.
Live subscriptions do not use this; they surface errors via on_error and
rely on the source to reconnect.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from practice_feed.config import settings
from practice_feed.errors import ConfigurationError, TransientNetworkError
from practice_feed.telemetry import RETRY_ATTEMPTS_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS = ("network", "timeout", "timed out", "failed to fetch", "offline")
TRANSIENT_TYPES = (
    TransientNetworkError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    RedisConnectionError,
    RedisTimeoutError,
)


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, ConfigurationError):
        return False
    if isinstance(exc, TRANSIENT_TYPES):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    operation: str,
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `fn()` and retry transient failures.

    `fn` is called at most 1 + max_retries times. The last error is
    re-raised unchanged once retries are exhausted.
    """
    retries = settings.retry_max_retries if max_retries is None else max_retries
    delay = settings.retry_base_delay if base_delay is None else base_delay

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= retries or not is_transient_error(exc):
                raise
            wait = delay * (2 ** attempt)
            attempt += 1
            RETRY_ATTEMPTS_TOTAL.labels(operation=operation).inc()
            logger.warning(
                "%s failed (%s) — retry %d/%d in %.1fs",
                operation, exc, attempt, retries, wait,
            )
            await sleep(wait)
