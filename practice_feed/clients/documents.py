"""
Shape of a stored user document, shared by every store adapter.

  {
    "name":         display name,
    "friends":      [followee ids],
    "logs":         [log dicts, append-only],
    "tagAnalytics": {lower-cased tag: count}
  }
"""
from typing import Any, Iterable, Optional

from practice_feed.tag_analytics import decrement_tag_analytics, update_tag_analytics


def new_user_document(name: str, friends: Iterable[str] = ()) -> dict[str, Any]:
    return {"name": name, "friends": list(friends), "logs": [], "tagAnalytics": {}}


def append_log(doc: dict[str, Any], entry: dict[str, Any]) -> dict[str, Any]:
    updated = dict(doc)
    updated["logs"] = [*(doc.get("logs") or []), entry]
    updated["tagAnalytics"] = update_tag_analytics(doc.get("tagAnalytics"), entry.get("tags") or [])
    return updated


def remove_log(doc: dict[str, Any], created_at: str) -> Optional[dict[str, Any]]:
    """Document without the first log created at `created_at`; None if absent."""
    logs = list(doc.get("logs") or [])
    for i, log in enumerate(logs):
        if isinstance(log, dict) and log.get("createdAt") == created_at:
            removed = logs.pop(i)
            updated = dict(doc)
            updated["logs"] = logs
            updated["tagAnalytics"] = decrement_tag_analytics(
                doc.get("tagAnalytics"), removed.get("tags") or []
            )
            return updated
    return None


def add_friend(doc: dict[str, Any], friend_id: str) -> dict[str, Any]:
    friends = list(doc.get("friends") or [])
    if friend_id not in friends:
        friends.append(friend_id)
    updated = dict(doc)
    updated["friends"] = friends
    return updated
