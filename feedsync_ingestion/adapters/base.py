"""
Source adapter protocol.

Contract:
    SourceAdapter.fetch(source) returns every row of the configured source
    as header-normalized ``SourceRows``.  An unreachable source or an
    unresolvable tab raises ``SourceFetchError``; callers treat it as fatal
    to the run.

Architecture: feedsync_ingestion/adapters. Source I/O only, no DB imports.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from feedsync_config.schema import SourceConfig
from feedsync_ingestion.domain.types import SourceRows


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading a tabular source into normalized rows."""

    def fetch(self, source: SourceConfig) -> SourceRows:
        ...


def source_label(source: SourceConfig) -> str:
    """Human-readable label for logs and error messages."""
    selector = source.sheet_name or (f"gid={source.gid}" if source.gid else "")
    label = f"{source.kind}:{source.locator}"
    return f"{label}[{selector}]" if selector else label
