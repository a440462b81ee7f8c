"""Reconciliation services: resolution, planning, execution and preview."""

from feedsync_sync.services.executor import MAX_REPORTED_ERRORS, SyncExecutor
from feedsync_sync.services.fetching import fetch_feed_rows
from feedsync_sync.services.planner import diff_against, plan, validate
from feedsync_sync.services.preview import MAX_PREVIEW_ERRORS, PreviewEngine
from feedsync_sync.services.resolver import IdentityResolver

__all__ = [
    "IdentityResolver",
    "MAX_PREVIEW_ERRORS",
    "MAX_REPORTED_ERRORS",
    "PreviewEngine",
    "SyncExecutor",
    "diff_against",
    "fetch_feed_rows",
    "plan",
    "validate",
]
