"""
PreviewEngine -- what a live run would do, without doing it.

Takes no lock and writes nothing: planning runs against a read-only
session that is rolled back before it is closed.  Fetch failures
propagate to the caller as SourceFetchError.
"""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.orm import Session, sessionmaker

from feedsync_config.schema import SyncSettings
from feedsync_ingestion.adapters import SourceAdapter
from feedsync_ingestion.mapping.engine import map_row
from feedsync_kernel.logging_config import LogContext, get_logger
from feedsync_sync.domain.types import (
    CreatePlan,
    InvalidPlan,
    PreviewResult,
    PreviewSample,
    RowError,
    UnchangedPlan,
    UpdatePlan,
)
from feedsync_sync.services.fetching import fetch_feed_rows
from feedsync_sync.services.planner import plan
from feedsync_sync.services.resolver import IdentityResolver

logger = get_logger("sync.preview")

MAX_PREVIEW_ERRORS = 10
SAMPLE_SIZE = 3


class PreviewEngine:
    def __init__(
        self,
        settings: SyncSettings,
        session_factory: sessionmaker[Session],
        adapters: Mapping[str, SourceAdapter] | None = None,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._adapters = adapters

    def preview(self, feed_key: str) -> PreviewResult:
        feed = self._settings.feed(feed_key)

        with LogContext.bind(feed_key=feed.key):
            source_rows = fetch_feed_rows(feed, self._adapters)

            excluded = invalid = creates = updates = skips = 0
            errors: list[RowError] = []
            sample: list[PreviewSample] = []

            session = self._session_factory()
            try:
                resolver = IdentityResolver(session, feed.variant)
                for row_number, raw in source_rows.numbered():
                    mapped = map_row(raw, feed.variant)
                    if mapped is None:
                        excluded += 1
                        continue

                    row_plan = plan(
                        row_number, mapped, resolver.resolve(mapped.client),
                        feed.variant, feed.code_prefix,
                    )
                    if isinstance(row_plan, InvalidPlan):
                        invalid += 1
                        errors.extend(row_plan.errors)
                        continue
                    if isinstance(row_plan, CreatePlan):
                        creates += 1
                    elif isinstance(row_plan, UpdatePlan):
                        updates += 1
                    elif isinstance(row_plan, UnchangedPlan):
                        skips += 1

                    if len(sample) < SAMPLE_SIZE:
                        sample.append(
                            PreviewSample(
                                row=row_number,
                                display_name=mapped.client.display_name,
                                customer_code=row_plan.customer_code,
                                action=row_plan.action.value,
                            )
                        )
            finally:
                session.rollback()
                session.close()

            result = PreviewResult(
                feed_key=feed.key,
                fetched_rows=len(source_rows),
                valid_rows=creates + updates + skips,
                invalid_rows=invalid,
                excluded_rows=excluded,
                would_create=creates,
                would_update=updates,
                would_skip=skips,
                errors=tuple(errors[:MAX_PREVIEW_ERRORS]),
                sample=tuple(sample),
            )
            logger.info(
                "sync_preview_completed",
                extra={
                    "fetched_rows": result.fetched_rows,
                    "would_create": creates,
                    "would_update": updates,
                    "would_skip": skips,
                    "invalid_rows": invalid,
                },
            )
            return result
