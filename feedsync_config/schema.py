"""
Settings schema.

Frozen dataclasses produced by ``feedsync_config.loader`` from the YAML
settings file and environment overrides.  Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from feedsync_kernel.domain.values import FeedVariant
from feedsync_kernel.exceptions import FeedNotConfiguredError

DEVELOPMENT = "development"

SOURCE_KINDS = frozenset({"google_sheets", "csv", "xlsx"})


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceConfig:
    """
    Where a feed's rows come from.

    ``kind`` selects the adapter.  Google Sheets sources use
    ``spreadsheet_id`` plus an optional tab selector (``gid`` first, then
    ``sheet_name``); file sources use ``path``.
    """

    kind: str
    spreadsheet_id: str | None = None
    gid: str | None = None
    sheet_name: str | None = None
    path: str | None = None
    delimiter: str = ","
    encoding: str = "utf-8"
    credentials_file: str | None = None

    @property
    def locator(self) -> str:
        return self.spreadsheet_id or self.path or ""


# ---------------------------------------------------------------------------
# Feeds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedSettings:
    """One configured feed, addressed by ``key`` in URLs and lock names."""

    key: str
    variant: FeedVariant
    code_prefix: str
    source: SourceConfig

    @property
    def source_label(self) -> str:
        # e.g. "google_sheets:posvenda_llc"
        return f"{self.source.kind}:{self.key}"


# ---------------------------------------------------------------------------
# Runtime knobs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitSettings:
    """Per-caller windows in seconds; 0 disables the limiter."""

    trigger_seconds: int = 60
    confirm_seconds: int = 60
    preview_seconds: int = 60


@dataclass(frozen=True)
class LockSettings:
    backend: str = "auto"  # auto | advisory | lease
    lease_ttl_seconds: int = 1800


@dataclass(frozen=True)
class SyncSettings:
    """Root settings object."""

    database_url: str
    environment: str = DEVELOPMENT
    trigger_secret: str | None = None
    session_tokens: tuple[str, ...] = ()
    google_credentials_file: str | None = None
    rate_limits: RateLimitSettings = field(default_factory=RateLimitSettings)
    lock: LockSettings = field(default_factory=LockSettings)
    feeds: dict[str, FeedSettings] = field(default_factory=dict)

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    def feed(self, key: str) -> FeedSettings:
        """Look up a feed, raising FeedNotConfiguredError when unknown."""
        try:
            return self.feeds[key]
        except KeyError:
            raise FeedNotConfiguredError(key, sorted(self.feeds)) from None
