"""
Typed exception hierarchy for feedsync.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes
instead of data buried in the message string.

    FeedSyncError (base)
    |
    +-- SourceError
    |   +-- SourceFetchError
    |
    +-- RowApplicationError
    |   +-- RowPersistenceError
    |
    +-- ConcurrencyError
    |   +-- LockContentionError
    |   +-- RateLimitedError
    |
    +-- ConfigurationError
    |   +-- FeedNotConfiguredError
    |   +-- InvalidSettingsError
    |
    +-- InternalSyncError

Code            | When raised
----------------|-------------------------------------------------------
SOURCE_FETCH_FAILED    | Upstream sheet/file unreachable or tab not found
ROW_PERSISTENCE_FAILED | One row's transactional write failed
SYNC_ALREADY_RUNNING   | Feed lock held by another process
RATE_LIMITED           | Caller exceeded its per-window allowance
FEED_NOT_CONFIGURED    | Unknown feed key
INVALID_SETTINGS       | Settings file/env missing a required value
INTERNAL_ERROR         | Any other failure before the row loop

Row-level errors never escape the executor: they are recorded as
``RowError`` entries and the loop continues. Run-level errors are caught
once at the run boundary.
"""


class FeedSyncError(Exception):
    """Base exception for all feedsync errors."""

    code: str = "FEEDSYNC_ERROR"


# Source errors


class SourceError(FeedSyncError):
    """Base exception for external source errors."""

    code: str = "SOURCE_ERROR"


class SourceFetchError(SourceError):
    """The external source could not be read. Fatal to the run."""

    code: str = "SOURCE_FETCH_FAILED"

    def __init__(self, source_label: str, reason: str):
        self.source_label = source_label
        self.reason = reason
        super().__init__(f"Could not fetch rows from {source_label}: {reason}")


# Row application errors


class RowApplicationError(FeedSyncError):
    """Base exception for per-row failures (always recovered locally)."""

    code: str = "ROW_ERROR"


class RowPersistenceError(RowApplicationError):
    """A row's transactional write failed."""

    code: str = "ROW_PERSISTENCE_FAILED"

    def __init__(self, row: int, reason: str, field: str | None = None):
        self.row = row
        self.field = field
        self.reason = reason
        super().__init__(f"Row {row} could not be applied: {reason}")


# Concurrency errors


class ConcurrencyError(FeedSyncError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class LockContentionError(ConcurrencyError):
    """Another run already holds the feed lock."""

    code: str = "SYNC_ALREADY_RUNNING"

    def __init__(self, feed_key: str):
        self.feed_key = feed_key
        super().__init__(f"A sync for feed '{feed_key}' is already running")


class RateLimitedError(ConcurrencyError):
    """Caller exceeded its rate-limit window."""

    code: str = "RATE_LIMITED"

    def __init__(self, caller: str, window_seconds: float):
        self.caller = caller
        self.window_seconds = window_seconds
        super().__init__(
            f"Wait {int(window_seconds)} seconds before requesting again"
        )


# Configuration errors


class ConfigurationError(FeedSyncError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class FeedNotConfiguredError(ConfigurationError):
    """No feed with the given key is configured."""

    code: str = "FEED_NOT_CONFIGURED"

    def __init__(self, feed_key: str, available: list[str] | None = None):
        self.feed_key = feed_key
        self.available = available or []
        super().__init__(
            f"Feed '{feed_key}' is not configured. "
            f"Available: {', '.join(self.available) or '(none)'}"
        )


class InvalidSettingsError(ConfigurationError):
    """Settings are missing a required value or hold an invalid one."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, setting: str, reason: str):
        self.setting = setting
        self.reason = reason
        super().__init__(f"Invalid setting '{setting}': {reason}")


# Internal


class InternalSyncError(FeedSyncError):
    """Unexpected failure before the row loop. Treated like a fetch failure."""

    code: str = "INTERNAL_ERROR"

    def __init__(self, feed_key: str, reason: str):
        self.feed_key = feed_key
        self.reason = reason
        super().__init__(f"Sync for feed '{feed_key}' failed: {reason}")
