"""
feedsync_config -- settings for the sync service.

``load_settings()`` is the single way to obtain settings at runtime; it
reads the YAML file and applies environment overrides, returning a frozen
``SyncSettings``.
"""

from feedsync_config.loader import DEFAULT_SETTINGS_PATH, load_settings, parse_settings
from feedsync_config.schema import (
    FeedSettings,
    LockSettings,
    RateLimitSettings,
    SourceConfig,
    SyncSettings,
)

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "FeedSettings",
    "LockSettings",
    "RateLimitSettings",
    "SourceConfig",
    "SyncSettings",
    "load_settings",
    "parse_settings",
]
