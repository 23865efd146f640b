"""
In-process document store implementing ProfileStore, SnapshotReader,
LiveLogSource and LogWriter.

Changes are delivered synchronously to subscribers, which makes it the
store of choice for tests and local demos.
"""
import logging
from collections import defaultdict
from typing import Any, Iterable, Optional

from practice_feed.clients import documents
from practice_feed.errors import NotFoundError
from practice_feed.normalizer import extract_string, normalize_profile, unwrap_value
from practice_feed.ports import ErrorCallback, SnapshotCallback, Unsubscribe
from practice_feed.schemas import Profile, RawSnapshot

logger = logging.getLogger(__name__)


class _Subscriber:
    def __init__(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._subscribers: dict[str, list[_Subscriber]] = defaultdict(list)

    # ── Fixtures / direct manipulation ─────────────────────────────────────

    def put_user(
        self,
        user_id: str,
        name: Optional[str] = None,
        friends: Iterable[str] = (),
        logs: Iterable[Any] = (),
    ) -> None:
        doc = documents.new_user_document(name or user_id, friends)
        doc["logs"] = list(logs)
        self._docs[user_id] = doc
        self._notify(user_id)

    def put_document(self, user_id: str, doc: dict[str, Any]) -> None:
        """Store a raw (possibly wire-encoded) document as is."""
        self._docs[user_id] = doc
        self._notify(user_id)

    def set_logs(self, user_id: str, logs: Iterable[Any]) -> None:
        doc = dict(self._require(user_id))
        doc["logs"] = list(logs)
        self._docs[user_id] = doc
        self._notify(user_id)

    def document(self, user_id: str) -> Optional[dict[str, Any]]:
        return self._docs.get(user_id)

    def fail(self, user_id: str, error: BaseException) -> None:
        """Report `error` to every live subscriber of `user_id`."""
        for sub in list(self._subscribers[user_id]):
            if sub.active:
                sub.on_error(error)

    def subscriber_count(self, user_id: str) -> int:
        return sum(1 for sub in self._subscribers[user_id] if sub.active)

    # ── ProfileStore ───────────────────────────────────────────────────────

    async def read(self, user_id: str) -> Optional[Profile]:
        doc = self._docs.get(user_id)
        if doc is None:
            return None
        return normalize_profile(user_id, doc)

    async def read_snapshot(self, user_id: str) -> Optional[RawSnapshot]:
        if user_id not in self._docs:
            return None
        return self._snapshot(user_id)

    # ── LiveLogSource ──────────────────────────────────────────────────────

    def subscribe(
        self,
        user_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        sub = _Subscriber(on_snapshot, on_error)
        self._subscribers[user_id].append(sub)

        def unsubscribe() -> None:
            sub.active = False
            if sub in self._subscribers[user_id]:
                self._subscribers[user_id].remove(sub)

        sub.on_snapshot(self._snapshot(user_id))
        return unsubscribe

    # ── LogWriter ──────────────────────────────────────────────────────────

    async def append_log(self, owner_id: str, entry: dict[str, Any]) -> None:
        self._docs[owner_id] = documents.append_log(self._require(owner_id), entry)
        logger.debug("Appended log %s for %s", entry.get("createdAt"), owner_id)
        self._notify(owner_id)

    async def remove_log(self, owner_id: str, created_at: str) -> bool:
        updated = documents.remove_log(self._require(owner_id), created_at)
        if updated is None:
            return False
        self._docs[owner_id] = updated
        self._notify(owner_id)
        return True

    async def add_friend(self, user_id: str, friend_id: str) -> None:
        self._docs[user_id] = documents.add_friend(self._require(user_id), friend_id)
        self._notify(user_id)

    # ── Internals ──────────────────────────────────────────────────────────

    def _require(self, user_id: str) -> dict[str, Any]:
        doc = self._docs.get(user_id)
        if doc is None:
            raise NotFoundError(f"User document {user_id} does not exist")
        return doc

    def _snapshot(self, user_id: str) -> RawSnapshot:
        doc = self._docs.get(user_id)
        if doc is None:
            return RawSnapshot()
        logs = unwrap_value(doc.get("logs"))
        return RawSnapshot(
            display_name=extract_string(doc.get("name")),
            logs=logs if isinstance(logs, list) else [],
        )

    def _notify(self, user_id: str) -> None:
        subs = list(self._subscribers.get(user_id, ()))
        if not subs:
            return
        snapshot = self._snapshot(user_id)
        for sub in subs:
            # a callback may unsubscribe its siblings
            if sub.active:
                sub.on_snapshot(snapshot)
