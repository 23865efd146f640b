"""
Store capabilities the feed engine consumes.

Adapters live in practice_feed.clients (Redis, in-memory).
"""
from typing import Any, Callable, Optional, Protocol

from practice_feed.schemas import Profile, RawSnapshot

SnapshotCallback = Callable[[RawSnapshot], None]
ErrorCallback = Callable[[BaseException], None]
Unsubscribe = Callable[[], None]


class ProfileStore(Protocol):
    async def read(self, user_id: str) -> Optional[Profile]:
        """One-shot read; None when the profile does not exist."""
        ...


class SnapshotReader(Protocol):
    async def read_snapshot(self, user_id: str) -> Optional[RawSnapshot]:
        """One-shot read of the member's full log array; None when absent."""
        ...


class LiveLogSource(Protocol):
    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """
        Push the member's full log array now and after every change.
        The returned callable stops delivery.
        """
        ...


class LogWriter(Protocol):
    async def append_log(self, owner_id: str, entry: dict[str, Any]) -> None:
        """Append one log to the owner's document. No update in place."""
        ...
