"""Per-user tag usage counts, keyed by lower-cased tag."""
from typing import Iterable, Mapping, Optional


def update_tag_analytics(current: Optional[Mapping[str, int]], tags: Iterable[str]) -> dict[str, int]:
    """New counts with every tag in `tags` incremented."""
    analytics = dict(current or {})
    for tag in tags:
        key = tag.lower()
        analytics[key] = analytics.get(key, 0) + 1
    return analytics


def decrement_tag_analytics(current: Optional[Mapping[str, int]], tags: Iterable[str]) -> dict[str, int]:
    """New counts with every known tag in `tags` decremented, floored at 0."""
    if not current:
        return {}
    analytics = dict(current)
    for tag in tags:
        key = tag.lower()
        if analytics.get(key):
            analytics[key] = max(0, analytics[key] - 1)
    return analytics


def calculate_tag_analytics(logs: Iterable[Mapping]) -> dict[str, int]:
    analytics: dict[str, int] = {}
    for log in logs:
        for tag in log.get("tags") or ():
            key = tag.lower()
            analytics[key] = analytics.get(key, 0) + 1
    return analytics
