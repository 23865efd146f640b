"""
Exception hierarchy for the feed engine.

  ConfigurationError    — backing store missing/unconfigured; never retried
  TransientNetworkError — network, timeout or offline failure; retried for
                          one-shot reads/writes
  MalformedDataError    — one stored record could not be normalised
  NotFoundError         — profile or followee missing; callers treat as empty
"""


class FeedError(Exception):
    """Base class for all feed engine errors."""


class ConfigurationError(FeedError):
    pass


class TransientNetworkError(FeedError):
    pass


class MalformedDataError(FeedError):
    pass


class NotFoundError(FeedError):
    pass


class ValidationError(FeedError):
    """A log entry was rejected by the write path."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        detail = "; ".join(f"{field}: {msg}" for field, msg in errors.items())
        super().__init__(f"Invalid log entry ({detail})")
