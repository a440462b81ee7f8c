"""Source lookup shared by the executor and the preview engine."""

from __future__ import annotations

from collections.abc import Mapping

from feedsync_config.schema import FeedSettings
from feedsync_ingestion.adapters import SourceAdapter, adapter_for
from feedsync_ingestion.domain.types import SourceRows


def fetch_feed_rows(
    feed: FeedSettings,
    adapters: Mapping[str, SourceAdapter] | None = None,
) -> SourceRows:
    """Fetch the feed's rows with the adapter registered for its source kind."""
    adapter = (adapters or {}).get(feed.source.kind) or adapter_for(feed.source.kind)
    return adapter.fetch(feed.source)
