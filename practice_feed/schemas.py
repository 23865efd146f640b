"""
Pydantic models for the feed engine.
Kept separate from the store adapters to avoid coupling the feed to storage.
"""
from typing import Any, Optional

from pydantic import BaseModel, Field


# ──────────────────────────── Logs ────────────────────────────────────────

class LogRecord(BaseModel):
    """One practice session, as normalised from a stored log entry."""
    created_at: str                  # timestamp token YYYY-MM-DD-HH-mm (UTC)
    duration: str                    # minutes, numeric string
    tags: tuple[str, ...] = ()       # as entered; lower-cased only for analytics
    description: Optional[str] = None

    class Config:
        frozen = True


class FeedEntry(BaseModel):
    """A log record carrying its author, as shown in the aggregated feed."""
    author: str                      # display name at aggregation time
    author_id: str
    created_at: str
    duration: str
    tags: tuple[str, ...] = ()
    description: Optional[str] = None

    class Config:
        frozen = True

    @classmethod
    def from_record(cls, record: LogRecord, author: str, author_id: str) -> "FeedEntry":
        return cls(author=author, author_id=author_id, **record.model_dump())


# ──────────────────────────── Snapshots ───────────────────────────────────

class RawSnapshot(BaseModel):
    """What a live source pushes: the member's whole stored log array."""
    display_name: Optional[str] = None
    logs: list[Any] = Field(default_factory=list)


class UserSnapshot(BaseModel):
    """Latest known state of one social-graph member."""
    author_id: str
    display_name: str
    logs: tuple[LogRecord, ...] = ()

    class Config:
        frozen = True


# ──────────────────────────── Social graph ────────────────────────────────

class Profile(BaseModel):
    user_id: str
    display_name: str
    followee_ids: tuple[str, ...] = ()

    class Config:
        frozen = True


class SocialGraph(BaseModel):
    viewer_id: str
    viewer_display_name: Optional[str] = None
    # viewer first, then followees in profile order
    members: tuple[str, ...] = ()

    class Config:
        frozen = True


# ──────────────────────────── Filters / paging ────────────────────────────

class FilterState(BaseModel):
    tag_filter: str = ""             # comma-separated terms
    user_filter: str = ""            # substring of author display name
    show_only_mine: bool = False

    class Config:
        frozen = True


class PaginationState(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)

    class Config:
        frozen = True
